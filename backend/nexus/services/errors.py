"""Workflow error taxonomy.

Services raise these; the API layer renders them as ``{"error": message}``
with the carried status code.
"""


class WorkflowError(Exception):
    """Base class for expected workflow failures"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthorized(WorkflowError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class Forbidden(WorkflowError):
    status_code = 403


class ValidationFailed(WorkflowError):
    status_code = 400


class NotFound(WorkflowError):
    status_code = 404


class Conflict(WorkflowError):
    """Duplicate vote or a transition attempted from the wrong state"""
    status_code = 409


class DependencyFailure(WorkflowError):
    """An external rule engine or oracle failed where no fallback is allowed"""
    status_code = 502
