"""Custom exceptions for the billing application."""


class AppError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class ValidationError(AppError):
    """Raised when request data fails validation (field-level detail in errors)."""
    def __init__(self, errors, message="Invalid bill data"):
        if isinstance(errors, str):
            errors = {'__all__': errors}
        self.errors = dict(errors)
        super().__init__(message, 400, {'errors': self.errors})


class NotFoundError(AppError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class BillIntegrityError(AppError):
    """Raised when client-submitted totals disagree with the server computation."""
    def __init__(self, mismatches):
        self.mismatches = mismatches
        fields = ', '.join(sorted(mismatches))
        super().__init__(
            f"Submitted totals do not match the computed bill: {fields}",
            422,
            {'mismatches': mismatches}
        )


class UnauthorizedError(AppError):
    """Raised when a request carries no valid credentials."""
    def __init__(self, message="Authentication required"):
        super().__init__(message, 401)


class ForbiddenError(AppError):
    """Raised when the caller is authenticated but lacks permission."""
    def __init__(self, message="Admin access required"):
        super().__init__(message, 403)


class InvoiceRenderError(AppError):
    """Raised when a persisted bill cannot be rendered."""
    def __init__(self, message="Failed to render invoice"):
        super().__init__(message, 500)
