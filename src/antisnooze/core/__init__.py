"""Core submodule: data model, configuration, scheduling and orchestration."""
