"""Sleep/wake detection and alarm escalation engine."""
