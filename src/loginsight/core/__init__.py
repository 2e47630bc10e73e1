"""Core infrastructure: configuration, logging and the error taxonomy."""
