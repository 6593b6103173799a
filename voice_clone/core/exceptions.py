"""Custom exceptions for the Voice Clone service."""

from typing import Optional


class VoiceCloneError(Exception):
    """Base exception for Voice Clone errors."""

    status_code = 500


class ValidationError(VoiceCloneError):
    """Raised when request parameters or uploads are rejected."""

    status_code = 400

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Validation error for '{field}': {reason}")


class NotFoundError(VoiceCloneError):
    """Raised when a job, model or artifact does not exist."""

    status_code = 404


class JobNotFoundError(NotFoundError):
    """Raised when a training job id is unknown."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Training job not found: {job_id}")


class ModelNotFoundError(NotFoundError):
    """Raised when a model weight file cannot be found."""

    def __init__(self, model_name: str, message: str = None):
        self.model_name = model_name
        self.message = message or f"Model not found: {model_name}"
        super().__init__(self.message)


class ArtifactNotFoundError(NotFoundError):
    """Raised when an expected output file is missing."""

    def __init__(self, path: str, message: str = None):
        self.path = path
        self.message = message or f"File not found: {path}"
        super().__init__(self.message)


class ConflictError(VoiceCloneError):
    """Raised when an identifier is already in use."""

    status_code = 409

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} already exists: {identifier}")


class InvalidStateError(VoiceCloneError):
    """Raised when an operation does not apply to a job in its current state."""

    status_code = 400

    def __init__(self, job_id: str, status: str, reason: str = None):
        self.job_id = job_id
        self.status = status
        message = f"Job {job_id} is {status}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ProcessError(VoiceCloneError):
    """Base class for toolkit subprocess outcomes other than success."""


class LaunchFailedError(ProcessError):
    """Raised when the toolkit executable could not be started."""

    def __init__(self, executable: str, reason: str = None):
        self.executable = executable
        self.reason = reason
        message = f"Failed to launch '{executable}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class StageFailedError(ProcessError):
    """Raised when a toolkit process ran and exited non-zero."""

    def __init__(self, stage: str, returncode: Optional[int] = None, stderr_tail: str = ""):
        self.stage = stage
        self.returncode = returncode
        self.stderr_tail = stderr_tail
        message = f"Stage '{stage}' failed"
        if returncode is not None:
            message += f" (exit code {returncode})"
        if stderr_tail:
            message += f": {stderr_tail}"
        super().__init__(message)


class ConversionError(StageFailedError):
    """Raised when the conversion process exits non-zero."""

    def __init__(self, returncode: Optional[int] = None, stderr_tail: str = ""):
        super().__init__("convert", returncode, stderr_tail)


class TerminatedError(ProcessError):
    """Raised when a process was stopped on request. Not a toolkit failure."""

    def __init__(self, label: str):
        self.label = label
        super().__init__(f"'{label}' was terminated on request")
