"""Error handling utilities."""

from typing import Optional


class TaskTrackError(Exception):
    """Base exception for the task tracking backend."""
    status_code = 500

    def __init__(self, message: str = "Server Error"):
        super().__init__(message)
        self.message = message


class NotFoundError(TaskTrackError):
    """Resource or referenced entity does not exist."""
    status_code = 404

    def __init__(self, entity: str, entity_id: Optional[str] = None):
        super().__init__(f"{entity} not found")
        self.entity = entity
        self.entity_id = entity_id


class ForbiddenError(TaskTrackError):
    """Requester is authenticated but lacks the capability."""
    status_code = 403


class AuthenticationError(TaskTrackError):
    """Request carries no usable principal."""
    status_code = 401


class RequestValidationError(TaskTrackError):
    """Request payload failed validation."""
    status_code = 400


class ConflictError(TaskTrackError):
    """Conditional write kept losing to concurrent updates."""
    status_code = 409


class SupabaseError(TaskTrackError):
    """Supabase operation error."""
    pass
