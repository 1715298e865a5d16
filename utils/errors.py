"""
Application error taxonomy.
Every externally-facing failure is one of these; the app error handler turns
them into {success: False, message} JSON with the matching status code.
"""


class AppError(Exception):
    """Base class for errors that are safe to show to the client"""
    status_code = 500
    default_message = "Something went wrong. Please try again later."

    def __init__(self, message=None, status_code=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {'success': False, 'message': self.message}


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request."


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Unauthorized"


class AuthorizationError(AppError):
    status_code = 403
    default_message = "You are not allowed to perform this action."


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found."


class ConflictError(AppError):
    status_code = 409
    default_message = "This request conflicts with existing data."


class UpstreamError(AppError):
    """Payment gateway, AI provider or other third-party failure"""
    status_code = 502
    default_message = "An external service is unavailable. Please try again later."


class InvalidSignature(ValidationError):
    default_message = "Invalid payment signature"


class PaymentNotFound(NotFoundError):
    default_message = "Payment record not found"


class InvalidStatusTransition(ValidationError):
    default_message = "Invalid status change"
