"""
Domain error taxonomy. The API layer maps each class to an HTTP status.
"""


class ChantError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(ChantError):
    status_code = 400
    code = "validation_error"


class NotFound(ChantError):
    status_code = 404
    code = "not_found"


class Unauthorized(ChantError):
    status_code = 401
    code = "unauthorized"


class Forbidden(ChantError):
    status_code = 403
    code = "forbidden"


class Internal(ChantError):
    status_code = 500
    code = "internal_error"
