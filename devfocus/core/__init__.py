"""
DevFocus - Core Package
=======================

Core business logic, models, and schemas.
"""
