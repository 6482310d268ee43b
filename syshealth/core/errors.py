class SysHealthError(Exception):
    """Base class for errors that stop a run."""


class BaselineUnavailableError(SysHealthError):
    """psutil / procfs cannot be read, so no check can be classified."""


class ConfigError(SysHealthError):
    """The threshold override file is unreadable or malformed."""
