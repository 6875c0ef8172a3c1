"""Error definitions for the ESU client."""


class EsuError(Exception):
    """Base error raised by the ESU client.

    Attributes:
        code: The numeric ESU error code, or 0 when the error did not come
            from the service.
        message: Human-readable error description.
        http_status: The HTTP status of the failed response, if any.
    """

    def __init__(
        self,
        message: str,
        code: int = 0,
        http_status: int | None = None,
    ) -> None:
        """Initialize the error.

        Args:
            message: Error description.
            code: ESU error code (default 0).
            http_status: HTTP status code, when a response was received.
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status


# -- Protocol errors ----------------------------------------------------------


class ParseError(EsuError):
    """A response body or header did not have the expected structure."""


class MultipartError(ParseError):
    """A multipart/byteranges body could not be parsed."""


class HeaderParseError(ParseError):
    """An x-emc header value could not be decoded."""


class XmlParseError(ParseError):
    """An XML response body was malformed or missing a required element."""


# -- Service errors ------------------------------------------------------------


class ServiceError(EsuError):
    """The service rejected the request with an ESU error document."""

    def __init__(self, message: str, code: int, http_status: int | None = None) -> None:
        super().__init__(message, code=code, http_status=http_status)


class HttpStatusError(EsuError):
    """The service returned an error status without a usable error document.

    Attributes:
        reason: The HTTP reason phrase of the response.
    """

    def __init__(self, http_status: int, reason: str = "") -> None:
        super().__init__(reason or f"HTTP {http_status}", code=http_status, http_status=http_status)
        self.reason = reason


class TransportError(EsuError):
    """The transport failed before a response was received."""


# -- Transfer errors -----------------------------------------------------------


class TransferError(EsuError):
    """A chunked upload or download failed.

    Attributes:
        cause: The underlying exception.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        code = cause.code if isinstance(cause, EsuError) else 0
        status = cause.http_status if isinstance(cause, EsuError) else None
        super().__init__(message, code=code, http_status=status)
        self.cause = cause
