"""Error taxonomy shared by services and endpoints."""


class LicitacionesError(Exception):
    """Base class for every error the application raises on purpose."""


class ConfigurationError(LicitacionesError):
    """A required setting (credential, endpoint) is missing."""


class AIConfigurationError(ConfigurationError):
    pass


class AIServiceError(LicitacionesError):
    """Transport or parsing failure talking to the AI service."""


class DuplicateTenderError(LicitacionesError):
    pass


class TenderNotFoundError(LicitacionesError):
    pass


class TenderBusyError(LicitacionesError):
    """The tender already has an analysis running."""


class PersistenceError(LicitacionesError):
    """The database or object storage rejected a write or read."""
