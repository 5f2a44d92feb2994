# errors.py — Error taxonomy for the authorization core
# Every error is terminal and user-visible; main.py renders them as
# {"detail": ..., "request_id": ...} with the status code below.


class TaskScopeError(Exception):
    """Base class for errors raised by the authorization core"""

    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class Unauthorized(TaskScopeError):
    """Missing or invalid credentials. Never says which part was wrong."""

    status_code = 401
    default_detail = "Invalid credentials"


class Forbidden(TaskScopeError):
    """Authenticated, but lacking the role, permission or organization scope"""

    status_code = 403
    default_detail = "Access denied"


class NotFound(TaskScopeError):
    status_code = 404
    default_detail = "Not found"


class Conflict(TaskScopeError):
    status_code = 409
    default_detail = "Conflict"


class InvalidReference(TaskScopeError):
    """A referenced record (organization, assignee) does not exist"""

    status_code = 400
    default_detail = "Referenced record does not exist"


class TooManyAttempts(TaskScopeError):
    status_code = 429
    default_detail = "Too many login attempts"
