from builtins import TimeoutError as _TimeoutError
from typing import Optional, Sequence

from gmi.status import Status, StatusClass, lookup


class GeminiError(Exception):
    """Base class for Gemini client exceptions.

    Attributes:
        url: The URL being fetched when the error occurred, if known.
        status: The status code received from the server, for errors
            driven by a response header.
        meta: The metadata the server sent along with the status code.
    """

    def __init__(
        self,
        message: str = "",
        url: Optional[str] = None,
        status: Optional[int] = None,
        meta: str = "",
    ):
        super().__init__(message)
        self.url = url
        self.status = status
        self.meta = meta


class URLParseError(GeminiError, ValueError):
    """The supplied URL could not be parsed."""


class UnsupportedSchemeError(GeminiError, ValueError):
    """The URL uses a scheme other than gemini://."""


class ConnectError(GeminiError, ConnectionError):
    """The TCP connection or the TLS handshake with the server failed."""


class SendError(GeminiError, ConnectionError):
    """The request could not be written to the server."""


class HeaderReadError(GeminiError, ConnectionError):
    """The response header could not be read."""


class HeaderParseError(GeminiError, ValueError):
    """The response header was malformed."""


class BodyReadError(GeminiError, ConnectionError):
    """The response body could not be read."""


class TimeoutError(GeminiError, _TimeoutError):
    """The fetch did not complete before its deadline."""


class UnsupportedMIMETypeError(GeminiError):
    """A successful response carried content the client does not handle."""


class UnsupportedFeatureError(GeminiError):
    """The server asked for something this client does not implement, such
    as user input."""


class BadRequestError(GeminiError):
    """The server could not process the request (status 59)."""


class ServerError(GeminiError):
    """Generic server-side failure. Used for the 4x and 5x status codes that
    are not given a more specific error class."""


class TemporaryFailureError(ServerError):
    """The request failed, but may succeed if attempted again later."""


class PermanentFailureError(ServerError):
    """The request failed, and should *not* be attempted again."""


class CertificateRequiredError(GeminiError, PermissionError):
    """The resource requires a client certificate."""


class CertificateError(GeminiError, PermissionError):
    """The server rejected the client certificate."""


class UnknownStatusError(GeminiError):
    """The server responded with a status code outside the status table."""


class RedirectLoopError(GeminiError):
    """The server redirected more times than the client allows."""

    def __init__(self, message: str, url: str, redirects: Sequence[str]):
        super().__init__(message, url=url)
        self.redirects = tuple(redirects)


def error_for_status(url: str, code: int, meta: str) -> GeminiError:
    """Returns the error matching a status code that ends a fetch without a
    body, i.e. anything but success and redirect codes."""
    status = lookup(code)
    if status is None:
        return UnknownStatusError(
            f"unknown response status code {code}", url=url, status=code, meta=meta
        )

    if status is Status.BAD_REQUEST:
        return BadRequestError(
            f"server could not process request: {meta}",
            url=url,
            status=status,
            meta=meta,
        )
    elif status is Status.CLIENT_CERTIFICATE_REQUIRED:
        return CertificateRequiredError(
            "resource requires a client certificate",
            url=url,
            status=status,
            meta=meta,
        )

    category = status.status_class
    if category is StatusClass.INPUT:
        return UnsupportedFeatureError(
            f"unsupported feature: input requested ({meta})",
            url=url,
            status=status,
            meta=meta,
        )
    elif category is StatusClass.TEMPORARY_FAILURE:
        return TemporaryFailureError(
            f"error: {meta}", url=url, status=status, meta=meta
        )
    elif category is StatusClass.PERMANENT_FAILURE:
        return PermanentFailureError(
            f"error: {meta}", url=url, status=status, meta=meta
        )
    elif category is StatusClass.CLIENT_CERTIFICATE:
        return CertificateError(
            f"certificate problem: {meta}", url=url, status=status, meta=meta
        )

    raise ValueError(f"status {status.value} does not end a fetch with an error")
