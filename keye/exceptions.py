class KeyeException(Exception):
    """Base exception for all keye errors."""

    message = 'A keye error occurred'

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)


class MalformedMessage(KeyeException):
    """Raised when a wire line cannot be decoded into a message object."""

    message = 'Malformed message'


class ServerNotStarted(KeyeException):
    """Raised when serving is requested before the server is listening."""

    message = 'Server not started; call start() first'
