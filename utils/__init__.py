"""Utility modules for the Event Finder client services."""

from .log_sanitizer import sanitize_log, sanitize_for_log

__all__ = ["sanitize_log", "sanitize_for_log"]
