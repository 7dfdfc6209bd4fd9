"""Custom exceptions for the Riap::Simple client."""


class RiapError(Exception):
    """Base exception for all Riap client errors.

    ``status`` follows Riap's response envelope convention: 400 for caller
    mistakes, 500 for everything that went wrong on the way to the server.
    """

    status = 500
    retryable = False

    def __init__(self, message: str, status: int | None = None):
        self.message = message
        if status is not None:
            self.status = status
        super().__init__(message)

    def __str__(self) -> str:
        return self.message

    def to_envelope(self) -> list:
        """Return the error as a Riap ``[status, message]`` envelope."""
        return [self.status, self.message]


class RiapValidationError(RiapError):
    """The request is malformed (missing server URL, bad action, ...)."""

    status = 400


class RiapMissingUriError(RiapValidationError):
    """Neither the server URL nor the request carries a resource uri."""
    pass


class RiapURLError(RiapError):
    """The server URL could not be classified."""

    status = 400


class RiapSchemeError(RiapURLError):
    """Scheme is not one of riap+tcp, riap+unix, riap+pipe."""
    pass


class RiapMalformedURLError(RiapURLError):
    """Scheme is known but the rest of the URL has the wrong shape."""
    pass


class RiapPathResolutionError(RiapURLError):
    """Socket or program path does not resolve to an existing file."""

    status = 500


class RiapConnectionError(RiapError):
    """Cannot connect to the server or spawn the program."""

    retryable = True


class RiapEncodeError(RiapError):
    """Request cannot be encoded as JSON."""

    status = 400


class RiapProtocolError(RiapError):
    """The exchange on an established connection failed."""
    pass
