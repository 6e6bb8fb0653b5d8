"""Exceptions raised by kubexpose."""


class ConfigurationError(ValueError):
    """The resolved configuration cannot be used to start the controller."""


class CleanupError(RuntimeError):
    """A cleanup run failed to list or delete an owned access object."""
