class ShortlinkError(Exception):
    """Base class for errors that map onto an HTTP response.

    ``status_code`` is the response status, ``log_level`` the level the
    event is reported with to the external log sink.
    """

    status_code = 500
    log_level = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ShortlinkError):
    status_code = 400


class AuthenticationError(ShortlinkError):
    status_code = 401
    log_level = "warn"


class NotFoundError(ShortlinkError):
    status_code = 404
    log_level = "warn"


class ConflictError(ShortlinkError):
    status_code = 409
    log_level = "warn"


class ExpiredError(ShortlinkError):
    status_code = 410
    log_level = "warn"


class InternalError(ShortlinkError):
    status_code = 500
