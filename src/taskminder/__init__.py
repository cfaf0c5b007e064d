"""taskminder: reminder dispatch engine for a multi-user task manager."""

__version__ = "0.1.0"
