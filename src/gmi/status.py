import enum
from typing import Dict, Optional


@enum.unique
class StatusClass(enum.Enum):
    """The six families of Gemini status codes, keyed by their first digit."""

    INPUT = 1
    SUCCESS = 2
    REDIRECT = 3
    TEMPORARY_FAILURE = 4
    PERMANENT_FAILURE = 5
    CLIENT_CERTIFICATE = 6

    def __repr__(self):
        return self.name

    def __str__(self):
        return self.name


@enum.unique
class Status(int, enum.Enum):
    """Enumeration of the status codes a Gemini server may respond with."""

    INPUT = 10
    SENSITIVE_INPUT = 11
    SUCCESS = 20
    REDIRECT_TEMPORARY = 30
    REDIRECT_PERMANENT = 31
    TEMPORARY_FAILURE = 40
    SERVER_UNAVAILABLE = 41
    CGI_ERROR = 42
    PROXY_ERROR = 43
    SLOW_DOWN = 44
    PERMANENT_FAILURE = 50
    NOT_FOUND = 51
    GONE = 52
    PROXY_REQUEST_REFUSED = 53
    BAD_REQUEST = 59
    CLIENT_CERTIFICATE_REQUIRED = 60
    CERTIFICATE_NOT_AUTHORISED = 61
    CERTIFICATE_NOT_VALID = 62

    _text: str

    def __repr__(self):
        return self.name

    def __str__(self):
        return self.name

    @property
    def text(self) -> str:
        """Human-readable label of the status code."""
        return self._text

    @property
    def status_class(self) -> StatusClass:
        return StatusClass(self.value // 10)


# Labels are attached after the class body so that Mypy still sees the members
# as plain int values.

Status.INPUT.__doc__ = "The requested resource accepts a line of textual input"
Status.INPUT._text = "Input"
Status.SENSITIVE_INPUT.__doc__ = "As INPUT, but the input should not be echoed"
Status.SENSITIVE_INPUT._text = "Sensitive Input"
Status.SUCCESS.__doc__ = "The request was handled successfully"
Status.SUCCESS._text = "Success"
Status.REDIRECT_TEMPORARY.__doc__ = "The resource is temporarily at a new URL"
Status.REDIRECT_TEMPORARY._text = "Temporary Redirect"
Status.REDIRECT_PERMANENT.__doc__ = "The resource has permanently moved"
Status.REDIRECT_PERMANENT._text = "Permanent Redirect"
Status.TEMPORARY_FAILURE.__doc__ = "The request failed, it may succeed later"
Status.TEMPORARY_FAILURE._text = "Temporary Failure"
Status.SERVER_UNAVAILABLE.__doc__ = "The server is unavailable (overload or maintenance)"
Status.SERVER_UNAVAILABLE._text = "Server Unavailable"
Status.CGI_ERROR.__doc__ = "A CGI process died unexpectedly or timed out"
Status.CGI_ERROR._text = "CGI Error"
Status.PROXY_ERROR.__doc__ = "A proxy request failed"
Status.PROXY_ERROR._text = "Proxy Error"
Status.SLOW_DOWN.__doc__ = "Rate limiting is in effect"
Status.SLOW_DOWN._text = "Slow Down"
Status.PERMANENT_FAILURE.__doc__ = "The request failed and will fail again"
Status.PERMANENT_FAILURE._text = "Permanent Failure"
Status.NOT_FOUND.__doc__ = "The requested resource could not be found"
Status.NOT_FOUND._text = "Not Found"
Status.GONE.__doc__ = "The resource is no longer available"
Status.GONE._text = "Gone"
Status.PROXY_REQUEST_REFUSED.__doc__ = "The server does not accept proxy requests"
Status.PROXY_REQUEST_REFUSED._text = "Proxy Request Refused"
Status.BAD_REQUEST.__doc__ = "The server was unable to parse the request"
Status.BAD_REQUEST._text = "Bad Request"
Status.CLIENT_CERTIFICATE_REQUIRED.__doc__ = "A client certificate is required"
Status.CLIENT_CERTIFICATE_REQUIRED._text = "Client Certificate Required"
Status.CERTIFICATE_NOT_AUTHORISED.__doc__ = (
    "The supplied client certificate is not authorised for the resource"
)
Status.CERTIFICATE_NOT_AUTHORISED._text = "Certificate Not Authorised"
Status.CERTIFICATE_NOT_VALID.__doc__ = "The supplied client certificate is not valid"
Status.CERTIFICATE_NOT_VALID._text = "Certificate Not Valid"

_STATUS_CODES: Dict[int, Status] = {s.value: s for s in Status}


def lookup(code: int) -> Optional[Status]:
    """Returns the Status for a numeric code, or None if the code is not
    part of the status table."""
    return _STATUS_CODES.get(code)


def status_text(code: int) -> str:
    """Returns the label of the status code, e.g. "Not Found" for 51. Unknown
    codes have an empty label."""
    status = lookup(code)
    return status.text if status is not None else ""


def status_line(code: int) -> str:
    """Returns the status code followed by its label, for example
    "20 (Success)" or "60 (Client Certificate Required)"."""
    return f"{int(code)} ({status_text(code)})"


def status_class(code: int) -> Optional[StatusClass]:
    status = lookup(code)
    return status.status_class if status is not None else None
