"""
Utility modules for the chapel booking application.

This package contains shared utility functions and helpers used across
the application, most importantly the timezone-aware datetime utilities.
"""
