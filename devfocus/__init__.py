"""DevFocus - focus timer, task tracking and analytics."""

__version__ = "0.1.0"
