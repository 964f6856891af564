"""Domain modules for the Event Finder client services."""
