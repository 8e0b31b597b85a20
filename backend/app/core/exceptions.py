class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)

class InvalidVacancyError(AppError):
    """Raised when a vacancy description is malformed (unknown day, bad period, blank subject)."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)

class PersistenceError(AppError):
    """Raised when the store keeps failing after the single guarded retry."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=503, details=details)

class InvalidLeaveRequestError(AppError):
    """Raised when a leave application or review breaks a workflow rule."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class LeaveConflictError(AppError):
    """Raised when a leave already exists for the date or is no longer in a reviewable state."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)

class ForbiddenActionError(AppError):
    def __init__(self, message: str):
        super().__init__(message, status_code=403)
