"""Error taxonomy shared by services and routers.

Services raise these; ``main.py`` turns them into
``{"detail": {"code", "message", "correlationId"}}`` responses.
"""


class ServiceError(Exception):
    code = "INTERNAL"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ServiceError):
    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Invalid request"


class DuplicateIdentity(ServiceError):
    code = "DUPLICATE_IDENTITY"
    status_code = 409
    default_message = "User already exists"


class Unauthenticated(ServiceError):
    code = "UNAUTHENTICATED"
    status_code = 401
    default_message = "Could not validate credentials"


class Forbidden(ServiceError):
    code = "FORBIDDEN"
    status_code = 403
    default_message = "Access denied"


class NotFound(ServiceError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Resource not found"


class Conflict(ServiceError):
    code = "CONFLICT"
    status_code = 409
    default_message = "Resource was modified concurrently, retry the request"


class InvalidTransition(Conflict):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move order from {current.value} to {target.value}")


class Internal(ServiceError):
    pass
