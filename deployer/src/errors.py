"""
Error taxonomy for pipeline runs.

Lower layers raise the specific errors below; the orchestrator wraps them
in StageFailed so the run result names both the stage and the error kind.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for every error a pipeline run can record."""
    pass


class ConfigurationError(PipelineError):
    """Raised when pipeline wiring or configuration is invalid."""
    pass


class IllegalTransition(PipelineError):
    """Raised when a stage status would move backwards."""
    pass


class CredentialReleased(PipelineError):
    """Raised when a released credential is read."""
    pass


class TestFailed(PipelineError):
    """A test command exited non-zero."""

    __test__ = False  # not a pytest test class

    def __init__(self, command: str, exit_code: int):
        self.command = command
        self.exit_code = exit_code
        super().__init__(f"Test command '{command}' exited with {exit_code}")


class BuildError(PipelineError):
    pass


class MissingDescriptor(BuildError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Build descriptor not found: {path}")


class BackendFailed(BuildError):
    def __init__(self, exit_code: int, detail: str = ""):
        self.exit_code = exit_code
        message = f"Build backend exited with {exit_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class AuthError(PipelineError):
    """Registry rejected the credential. Only the credential label is exposed."""

    def __init__(self, label: str, detail: str = ""):
        self.label = label
        message = f"Authentication failed for credential '{label}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class RegistryError(PipelineError):
    pass


class RegistryUnavailable(RegistryError):
    def __init__(self, operation: str, attempts: int, detail: str = ""):
        self.operation = operation
        self.attempts = attempts
        message = f"Registry unavailable for {operation} after {attempts} attempts"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ConnectError(PipelineError):
    pass


class ExecError(PipelineError):
    pass


class SessionLost(ExecError):
    def __init__(self, host: str, command: Optional[str] = None):
        self.host = host
        self.command = command
        if command:
            super().__init__(f"Session to {host} lost while running '{command}'")
        else:
            super().__init__(f"Session to {host} is no longer usable")


class DeployError(PipelineError):
    """A container lifecycle step failed; completed steps are not rolled back."""

    def __init__(self, step: str, detail: str):
        self.step = step
        self.detail = detail
        super().__init__(f"Deploy step '{step}' failed: {detail}")


class DeadlineExceeded(PipelineError, TimeoutError):
    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Deadline exceeded during {operation}")


class StageFailed(PipelineError):
    """Wraps a lower-level error with the stage it happened in."""

    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Stage '{stage}' failed ({self.error_kind}): {cause}")

    @property
    def error_kind(self) -> str:
        return type(self.cause).__name__
