"""Enumerations shared by the database models and the wire schemas."""

import enum


class TaskPriority(str, enum.Enum):
    """Task priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
