"""This is the processing submodule.

This module contains the engine itself: the signal metrics, the posture/motion
classifier, the vibration escalation controller and the alarm lifecycle state
machine.
"""
