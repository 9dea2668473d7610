"""Configuration errors."""


class ConfigError(Exception):
    """Raised when the config file, an ``OPBOT__`` variable, or an override is invalid."""
