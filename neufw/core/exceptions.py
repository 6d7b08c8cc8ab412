"""Custom exceptions for neuFramework."""


class NeuFrameworkError(Exception):
    """Base exception for all neuFramework errors."""

    pass


class FatalError(NeuFrameworkError):
    """Raised when the current invocation cannot continue."""

    pass


class ConfigurationError(FatalError):
    """Raised when configuration is invalid, missing or incomplete."""

    pass


class InfrastructureError(FatalError):
    """Raised when a database, cache or other backing service fails."""

    pass


class RegistryError(InfrastructureError):
    """Raised when a named connection cannot be registered or found."""

    def __init__(self, registry: str, message: str):
        self.registry = registry
        super().__init__(f"[{registry}] {message}")


class SettingLookupError(NeuFrameworkError, LookupError):
    """Raised when a dotted setting path runs through a non-mapping value."""

    def __init__(self, key: str, segment: str):
        self.key = key
        self.segment = segment
        super().__init__(f"Setting '{key}' cannot be resolved: '{segment}' is not a mapping")


class RedirectRequired(NeuFrameworkError):
    """Raised to stop processing and send the client elsewhere."""

    def __init__(self, url: str, permanent: bool = False):
        self.url = url
        self.permanent = permanent
        super().__init__(f"Redirect to {url}")

    @property
    def status_code(self) -> int:
        return 301 if self.permanent else 302


class LogWriteError(NeuFrameworkError):
    """Raised when neither the log file nor its fallback can be written."""

    pass


__all__ = [
    "NeuFrameworkError",
    "FatalError",
    "ConfigurationError",
    "InfrastructureError",
    "RegistryError",
    "SettingLookupError",
    "RedirectRequired",
    "LogWriteError",
]
