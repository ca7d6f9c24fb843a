from __future__ import annotations

import builtins
import codecs
import dataclasses
import functools
import logging
import re
import ssl
import time
from contextlib import closing
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, List, Optional, Tuple
from urllib.parse import SplitResult, urlsplit, urlunsplit

from typing_extensions import TypeAlias, assert_never

from gmi.error import (
    BodyReadError,
    HeaderParseError,
    HeaderReadError,
    RedirectLoopError,
    SendError,
    TimeoutError,
    UnsupportedMIMETypeError,
    UnsupportedSchemeError,
    URLParseError,
    error_for_status,
)
from gmi.status import Status, StatusClass, lookup
from gmi.transport import (
    Connector,
    Dialer,
    Stream,
    insecure_context,
    verifying_context,
)

logger = logging.getLogger(__name__)

# URL scheme for Gemini.
SCHEME = "gemini"
# MIME type of gemtext, the only content type the client accepts.
MIME_TYPE = "text/gemini"
# Maximum length of a Gemini URL, in bytes.
URL_MAX_LEN = 1024
# Two digit status, a space, the meta string and CRLF.
HEADER_MAX_LEN = URL_MAX_LEN + 5
DEFAULT_MAX_REDIRECTS = 5
DEFAULT_TIMEOUT = 9.0

# Size of each socket read.
READ_SIZE = 16384
_SCHEME_RE = re.compile(r"[A-Za-z][A-Za-z0-9+.-]*")


@dataclass(frozen=True)
class Response:
    """Response to a successful Gemini request.

    Attributes:
        url: The URL that produced the response, after following redirects.
        status: The response status code.
        meta: The response header metadata; the MIME type of the body.
        body: The received page content.
        duration: Time taken from sending the first request, redirects
            included, to receiving the whole body.
        redirects: URLs that redirected the client before reaching url.
    """

    url: str
    status: Status
    meta: str
    body: bytes = b""
    duration: timedelta = timedelta(0)
    redirects: Tuple[str, ...] = ()

    @property
    def content_length(self) -> int:
        return len(self.body)

    @property
    def mime_type(self) -> str:
        return self.meta.split(";", 1)[0].strip()

    @property
    def charset(self) -> str:
        """The charset parameter of meta. Missing or unknown charsets
        default to utf-8."""
        for param in self.meta.split(";")[1:]:
            key, _, value = param.strip().partition("=")
            if key.lower() == "charset" and value:
                charset = value.strip('"')
                try:
                    codecs.lookup(charset)
                except LookupError:
                    logger.debug("unknown charset %r, using utf-8", charset)
                    break
                return charset
        return "utf-8"

    @property
    def text(self) -> str:
        """The body decoded with the charset announced by the server."""
        return self.body.decode(self.charset, errors="replace")


@dataclass(frozen=True)
class ClientConfig:
    """Settings of a Client. Instances are built by applying option functions
    to the defaults, and are never modified afterwards.

    A ClientConfig without an SSL context verifies server certificates against
    the system trust store.
    """

    connect_timeout: Optional[float] = None
    read_timeout: Optional[float] = None
    ssl_context: Optional[ssl.SSLContext] = None
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    dialer: Optional[Dialer] = None

    def make_dialer(self) -> Dialer:
        if self.dialer is not None:
            return self.dialer
        return Connector(
            self.ssl_context or verifying_context(),
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
        )


Option: TypeAlias = Callable[[ClientConfig], ClientConfig]


def _check_seconds(seconds: Optional[float]):
    if seconds is not None and seconds <= 0:
        raise ValueError(f"timeout must be positive: {seconds}")


def timeout(seconds: Optional[float]) -> Option:
    """Sets the socket connect timeout, in seconds."""
    _check_seconds(seconds)
    return functools.partial(dataclasses.replace, connect_timeout=seconds)


def read_timeout(seconds: Optional[float]) -> Option:
    """Sets the timeout of each read once connected, in seconds."""
    _check_seconds(seconds)
    return functools.partial(dataclasses.replace, read_timeout=seconds)


def tls_context(context: ssl.SSLContext) -> Option:
    """Sets the TLS configuration used to connect to servers."""
    return functools.partial(dataclasses.replace, ssl_context=context)


def insecure() -> Option:
    """Disables verification of server certificates."""
    return tls_context(insecure_context())


def verify(cafile: Optional[str] = None, capath: Optional[str] = None) -> Option:
    """Enables verification of server certificates against the system trust
    store and the optional extra roots."""
    return tls_context(verifying_context(cafile=cafile, capath=capath))


def max_redirects(count: int) -> Option:
    """Sets how many redirects a single fetch may follow."""
    if count < 0:
        raise ValueError(f"max redirects cannot be negative: {count}")
    return functools.partial(dataclasses.replace, max_redirects=count)


def dialer(d: Dialer) -> Option:
    """Replaces the connector used to open connections."""
    return functools.partial(dataclasses.replace, dialer=d)


def normalize_url(url: str) -> SplitResult:
    """Parses a URL to request, adding the gemini:// scheme when the URL has
    none.

    Raises:
        URLParseError: if the URL is malformed or too long.
        UnsupportedSchemeError: if the URL uses another scheme than gemini.
    """
    if "://" not in url:
        url = f"{SCHEME}://{url}"

    scheme = url.split("://", 1)[0]
    if not _SCHEME_RE.fullmatch(scheme):
        raise URLParseError(
            f"error parsing supplied URL: invalid scheme '{scheme}'", url=url
        )

    try:
        parsed = urlsplit(url)
        parsed.port  # raises ValueError if the port is invalid
    except ValueError as e:
        raise URLParseError(f"error parsing supplied URL: {e}", url=url) from e

    if parsed.scheme != SCHEME:
        raise UnsupportedSchemeError(
            f"unsupported URL scheme '{parsed.scheme}'", url=url
        )
    if not parsed.hostname:
        raise URLParseError("error parsing supplied URL: missing host", url=url)
    if len(parsed.geturl().encode()) > URL_MAX_LEN:
        raise URLParseError(
            f"error parsing supplied URL: longer than {URL_MAX_LEN} bytes", url=url
        )
    return parsed


def parse_header(header: str) -> Tuple[int, str]:
    """Parses a response header into its status code and metadata.

    Raises:
        HeaderParseError: if the header does not start with a status code.
    """
    header = header.strip("\r\n ")
    token, _, meta = header.partition(" ")
    if not (token.isascii() and token.isdigit()):
        raise HeaderParseError(
            f"could not extract response status code from '{token}'", meta=meta
        )
    return int(token), meta.rstrip("\n")


def check_mime_type(url: str, meta: str):
    if not meta.startswith(MIME_TYPE):
        raise UnsupportedMIMETypeError(
            f"unsupported MIME type '{meta}'", url=url, status=Status.SUCCESS, meta=meta
        )


def _remove_dot_segments(path: str) -> str:
    segments = path.split("/")
    resolved: List[str] = []
    for segment in segments:
        if segment == "..":
            # never pop the empty segment of the leading "/"
            if len(resolved) > 1 or (resolved and resolved[0]):
                resolved.pop()
        elif segment != ".":
            resolved.append(segment)
    if segments[-1] in (".", ".."):
        resolved.append("")
    return "/".join(resolved)


def resolve(base: str, reference: str) -> str:
    """Resolves a URL reference, such as the target of a redirect, against
    the base URL it was received from (RFC 3986 section 5.2).

    urllib.parse.urljoin only resolves references for the schemes it knows
    about, which do not include gemini.
    """
    ref = urlsplit(reference)
    if ref.scheme:
        path = _remove_dot_segments(ref.path)
        return urlunsplit((ref.scheme, ref.netloc, path, ref.query, ref.fragment))

    b = urlsplit(base)
    if reference.startswith("//"):
        netloc, path, query = ref.netloc, _remove_dot_segments(ref.path), ref.query
    elif not ref.path:
        netloc, path = b.netloc, b.path
        query = ref.query if "?" in reference else b.query
    elif ref.path.startswith("/"):
        netloc, path, query = b.netloc, _remove_dot_segments(ref.path), ref.query
    else:
        if b.netloc and not b.path:
            merged = "/" + ref.path
        else:
            merged = b.path[: b.path.rfind("/") + 1] + ref.path
        netloc, path, query = b.netloc, _remove_dot_segments(merged), ref.query
    return urlunsplit((b.scheme, netloc, path, query, ref.fragment))


def redirect_target(
    url: SplitResult, meta: str, redirects: List[str], limit: int
) -> SplitResult:
    """Records url in the redirect chain and returns the URL it redirects to.

    Raises:
        RedirectLoopError: if the chain is longer than limit.
    """
    current = url.geturl()
    redirects.append(current)
    if len(redirects) > limit:
        raise RedirectLoopError(
            f"stopped after {limit} redirects at '{current}'",
            url=current,
            redirects=redirects,
        )

    target = resolve(current, meta.strip())
    scheme = urlsplit(target).scheme
    if scheme and scheme != SCHEME:
        raise UnsupportedSchemeError(
            f"unsupported URL scheme '{scheme}' in redirect from '{current}'",
            url=target,
        )
    logger.debug("redirected from %s to %s", current, target)
    return normalize_url(target)


class _Exchange:
    """One request and its response over a single connection."""

    def __init__(
        self,
        conn: Stream,
        url: str,
        deadline: Optional[float],
        read_timeout: Optional[float],
    ):
        self.conn = conn
        self.url = url
        self.deadline = deadline
        self.read_timeout = read_timeout
        self.buffer = b""

    def _arm(self):
        if self.deadline is None:
            if self.read_timeout is not None:
                self.conn.settimeout(self.read_timeout)
            return
        remaining = self.deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError(f"timed out fetching '{self.url}'", url=self.url)
        if self.read_timeout is not None:
            remaining = min(remaining, self.read_timeout)
        self.conn.settimeout(remaining)

    def send(self):
        self._arm()
        try:
            self.conn.sendall(f"{self.url}\r\n".encode())
        except builtins.TimeoutError as e:
            raise TimeoutError(
                f"timed out sending request to '{self.url}'", url=self.url
            ) from e
        except OSError as e:
            raise SendError(
                f"could not send request to server: {e}", url=self.url
            ) from e

    def _recv(self, error: type) -> bytes:
        self._arm()
        try:
            return self.conn.recv(READ_SIZE)
        except builtins.TimeoutError as e:
            raise TimeoutError(
                f"timed out reading response from '{self.url}'", url=self.url
            ) from e
        except OSError as e:
            raise error(f"could not read response: {e}", url=self.url) from e

    def read_header(self) -> Tuple[int, str]:
        while b"\n" not in self.buffer:
            if len(self.buffer) > HEADER_MAX_LEN:
                raise HeaderReadError(
                    f"could not read response header: longer than {HEADER_MAX_LEN} bytes",
                    url=self.url,
                )
            chunk = self._recv(HeaderReadError)
            if not chunk:
                raise HeaderReadError(
                    "could not read response header: unexpected end of stream",
                    url=self.url,
                )
            self.buffer += chunk

        line, _, self.buffer = self.buffer.partition(b"\n")
        if len(line) + 1 > HEADER_MAX_LEN:
            raise HeaderReadError(
                f"could not read response header: longer than {HEADER_MAX_LEN} bytes",
                url=self.url,
            )
        try:
            return parse_header(line.decode())
        except UnicodeDecodeError as e:
            raise HeaderParseError(
                f"could not parse response header: {e}", url=self.url
            ) from e
        except HeaderParseError as e:
            e.url = self.url
            raise

    def read_body(self) -> bytes:
        chunks = [self.buffer]
        self.buffer = b""
        while True:
            chunk = self._recv(BodyReadError)
            if not chunk:
                return b"".join(chunks)
            chunks.append(chunk)


class Client:
    """Client for Gemini servers.

    Clients are configured once, by the option functions passed to the
    constructor, and are safe to share between threads.

    A client built without options verifies server certificates. See
    default_client for a client which does not.
    """

    __slots__ = ("config", "_dialer")

    def __init__(self, *options: Option):
        config = ClientConfig()
        for option in options:
            config = option(config)
        self.config = config
        self._dialer = config.make_dialer()

    def get(self, url: str, timeout: Optional[float] = None) -> Response:
        """Fetch a Gemini URL, following redirects.

        Args:
            url: The URL to fetch. The gemini:// scheme is assumed when the
                URL has none.
            timeout: Optional deadline for the whole fetch, in seconds.

        Returns:
            The response of the last request in the redirect chain.

        Raises:
            GeminiError: a subclass describing why the fetch failed.
        """
        start = time.monotonic()
        deadline = start + timeout if timeout is not None else None
        redirects: List[str] = []

        target = normalize_url(url)
        while True:
            current = target.geturl()
            logger.debug("requesting %s", current)
            conn = self._dialer.connect(target)
            with closing(conn):
                exchange = _Exchange(conn, current, deadline, self.config.read_timeout)
                exchange.send()
                code, meta = exchange.read_header()
                logger.debug("received header %d %r from %s", code, meta, current)

                status = lookup(code)
                if status is None:
                    raise error_for_status(current, code, meta)

                category = status.status_class
                match category:
                    case StatusClass.SUCCESS:
                        check_mime_type(current, meta)
                        body = exchange.read_body()
                        return Response(
                            url=current,
                            status=status,
                            meta=meta,
                            body=body,
                            duration=timedelta(seconds=time.monotonic() - start),
                            redirects=tuple(redirects),
                        )
                    case StatusClass.REDIRECT:
                        pass
                    case (
                        StatusClass.INPUT
                        | StatusClass.TEMPORARY_FAILURE
                        | StatusClass.PERMANENT_FAILURE
                        | StatusClass.CLIENT_CERTIFICATE
                    ):
                        raise error_for_status(current, code, meta)
                    case _:
                        assert_never(category)

            target = redirect_target(target, meta, redirects, self.config.max_redirects)


@functools.lru_cache(maxsize=None)
def default_client() -> Client:
    """Returns a barebones client for basic Gemini calls.

    The client has a 9 second connect timeout and skips certificate
    verification. Applications where trust matters should create their own
    client with an appropriate TLS configuration.
    """
    return Client(timeout(DEFAULT_TIMEOUT), insecure())


def get(url: str, timeout: Optional[float] = None) -> Response:
    """Retrieves the given Gemini resource with the default client, so no
    TLS certificate checking is performed."""
    return default_client().get(url, timeout=timeout)
