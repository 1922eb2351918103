"""Domain exceptions mapped to HTTP status codes by the global error handler."""


class WaitlistError(Exception):
    """Base class for errors that carry an HTTP status and a client-facing detail."""

    status_code: int = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class BadRequestError(WaitlistError):
    status_code = 400


class UnauthorizedError(WaitlistError):
    status_code = 401


class NotFoundError(WaitlistError):
    status_code = 404


class ConflictError(WaitlistError):
    status_code = 409
