"""Custom exception hierarchy for Shipyard configuration and operations."""


class ShipyardError(Exception):
    """Base exception for all Shipyard errors.

    All Shipyard-specific exceptions inherit from this class, enabling
    centralized exception handling at the CLI boundary.
    """

    pass


class ConfigError(ShipyardError):
    """Exception raised for configuration errors.

    This exception is raised when workspace configuration loading or parsing
    fails. It includes field-specific information to help users identify and
    fix configuration issues.

    Attributes:
        field: The configuration field that caused the error
        message: Human-readable error message describing the issue
    """

    def __init__(self, field: str, message: str) -> None:
        """Initialize ConfigError with field and message.

        Args:
            field: Configuration field name where error occurred
            message: Descriptive error message
        """
        self.field = field
        self.message = message
        super().__init__(f"Configuration error in '{field}': {message}")


class DeploymentError(ShipyardError):
    """Exception raised when a deployment run cannot start or proceed.

    Per-module deploy failures never raise; they are reported as failed
    outcomes. This error covers setup failures such as an empty module
    discovery or an unsupported stage.

    Attributes:
        operation: The deployment operation that failed
        message: Human-readable error message
    """

    def __init__(self, operation: str, message: str) -> None:
        """Create a deployment error for an operation."""
        self.operation = operation
        self.message = message
        super().__init__(f"Deployment operation '{operation}' failed: {message}")


class RegistryError(ShipyardError):
    """Exception raised when a package registry call fails."""

    def __init__(self, operation: str, message: str) -> None:
        """Create a registry error for an operation."""
        self.operation = operation
        self.message = message
        super().__init__(f"Registry operation '{operation}' failed: {message}")


class PublishError(ShipyardError):
    """Exception raised when a package cannot be published.

    Attributes:
        package: Name of the package being published
        message: Human-readable error message
    """

    def __init__(self, package: str, message: str) -> None:
        """Create a publish error for a package."""
        self.package = package
        self.message = message
        super().__init__(f"Failed to publish '{package}': {message}")
