"""Core configuration, errors, hooks and logging."""
