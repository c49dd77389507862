"""Exception classes raised by the service layer.

Services raise these instead of `HTTPException` so they stay usable
outside a request; `studygroups.main` maps them onto HTTP responses.
"""


class ServiceError(Exception):
    """Base application error carrying an HTTP status code."""

    def __init__(self, message, status_code=500):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class BadRequestError(ServiceError):
    """Raised for malformed or state-conflicting requests."""

    def __init__(self, message="Bad request"):
        super().__init__(message, 400)


class ForbiddenError(ServiceError):
    """Raised when the caller lacks membership or the admin role."""

    def __init__(self, message="Forbidden"):
        super().__init__(message, 403)


class NotFoundError(ServiceError):
    """Raised when a group, user or other resource does not exist."""

    def __init__(self, message="Resource not found"):
        super().__init__(message, 404)
