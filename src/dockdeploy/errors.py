"""Domain errors for dockdeploy."""


class DeployError(RuntimeError):
    """Raised when the deployment cannot continue safely."""


class OperationCancelled(Exception):
    """Raised when the operator declines a confirmation gate."""


class CommandTimeout(DeployError):
    """Raised when a command exceeds its deadline."""
