"""Domain errors for the CNAB Azure driver."""


class DriverError(RuntimeError):
    """Raised when the bundle operation cannot continue safely."""


class ConfigurationError(DriverError):
    """Raised when the driver environment is incomplete or contradictory."""


class AuthenticationError(DriverError):
    """Raised when no credential source could log in to Azure."""


class UnsupportedRegionError(DriverError):
    """Raised when Azure Container Instances is not offered in the region."""


class RoleNotFoundError(DriverError):
    """Raised when a role name does not resolve to a definition in a scope."""


class RoleAssignmentError(DriverError):
    """Raised when a role assignment could not be created after retries."""


class MissingStateStoreError(DriverError):
    """Raised when a bundle declares outputs but no state file share is set."""


class RunFailedError(DriverError):
    """Raised when the container group ends in a non-successful state."""


class IOBridgeError(DriverError):
    """Raised when outputs cannot be read back from the state file share."""
