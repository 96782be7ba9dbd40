class PlexBuyError(Exception):
    """Base class for all backend errors"""


class ConfigurationError(PlexBuyError, ValueError):
    """Raised when an environment setting is present but unusable"""


class CapabilityInitError(PlexBuyError):
    """Setup of an external capability failed.

    Never leaves the readiness gate; it is logged and recorded as ``False``
    for the capability that raised it.
    """


class CredentialMissing(CapabilityInitError):
    pass


class CredentialMalformed(CapabilityInitError):
    pass


class ConnectionFailure(CapabilityInitError):
    pass


class HealthCheckFailure(CapabilityInitError):
    pass


class GenerationError(PlexBuyError):
    """Text generation failed (network, quota or response format)"""


class StoreError(PlexBuyError):
    """Document store query failed or the store is not connected"""


class RequestProcessingError(PlexBuyError):
    """Any unexpected failure while serving a live request"""
