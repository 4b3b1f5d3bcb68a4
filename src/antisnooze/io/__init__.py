"""Collaborators at the edge of the engine: sensors, devices, stores and sync."""
