"""Core modules: configuration, logging, exceptions and dependencies."""
