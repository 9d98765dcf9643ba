"""Core wiring: configuration, event bus, pipeline and application host."""
