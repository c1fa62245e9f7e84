"""
Release error taxonomy.
"""

class ReleaseError(Exception):
    """Base class for all release train errors."""
    pass

class TopologyConfigError(ReleaseError):
    """Raised when the release topology file is invalid."""
    pass

class StageError(ReleaseError):
    """Raised by a pipeline stage; fatal to the current run."""
    pass

class SourceUnavailable(StageError):
    """The upstream source reference cannot be resolved."""
    pass

class BuildFailure(StageError):
    def __init__(self, exit_reason: str):
        super().__init__(f"Build failed: {exit_reason}")
        self.exit_reason = exit_reason

class UploadFailure(StageError):
    """The artifact could not be durably written."""
    pass

class PermissionDenied(StageError):
    def __init__(self, principal: str, resource: str, action: str):
        super().__init__(f"{principal} is not allowed to {action} on {resource}")
        self.principal = principal
        self.resource = resource
        self.action = action

class NotFound(StageError):
    pass

class InvocationFailure(StageError):
    def __init__(self, cause: str):
        super().__init__(f"Invocation failed: {cause}")
        self.cause = cause

class Timeout(StageError):
    def __init__(self, operation: str, seconds: float):
        super().__init__(f"{operation} did not complete within {seconds}s")
        self.operation = operation
        self.seconds = seconds
