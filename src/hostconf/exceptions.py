from typing import Optional


class HostConfError(Exception):
    """Base exception for all application-specific errors."""

    pass


# --- 1. Errors related to registering files with the cache ---
class RegistrationError(HostConfError):
    """Base class for errors raised while registering files or patterns."""

    pass


class DuplicateRegistrationError(RegistrationError):
    """Raised when an id, path or pattern is registered twice."""

    pass


class RegistrationClosedError(RegistrationError):
    """Raised when registering after the change-notification session started."""

    pass


class UnsupportedOptionError(RegistrationError):
    """Raised when a registration carries an option the cache does not know."""

    pass


class NotRegisteredError(HostConfError):
    """Raised when an id or path resolves to no registered file."""

    pass


class CodecNotImplementedError(HostConfError):
    """Raised when a file is asked for an operation its codec does not provide."""

    pass


# --- 2. Errors related to IO operations ---
class HostConfIOError(HostConfError):
    """Raised when opening, writing, closing or renaming a file fails."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class LockTimeoutError(HostConfIOError):
    """Raised when an advisory lock cannot be acquired within the timeout."""

    pass


# --- 3. Errors related to loading the application configuration ---
class ConfigurationError(HostConfError):
    """Base class for errors encountered while finding, reading, or parsing config files."""

    pass


class ConfigFileMissingError(ConfigurationError):
    """Raised when an explicitly requested configuration file cannot be found."""

    pass


class ConfigParsingError(ConfigurationError):
    """Raised when a YAML configuration file is syntactically incorrect."""

    pass


class ConfigValidationError(ConfigurationError):
    """Raised when the configuration fails structural validation (e.g., Pydantic)."""

    pass


# --- 4. Errors raised by codecs on the data they are given ---
class CodecError(HostConfError):
    """Raised when a codec rejects the data it was asked to write."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InterfaceValidationError(CodecError):
    """Raised when a network configuration fails cross-interface validation."""

    def __init__(self, message: str, iface: Optional[str] = None, field: Optional[str] = None):
        super().__init__(message, field=field)
        self.iface = iface
