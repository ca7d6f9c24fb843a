"""Transport layer of the Gemini client: turns a parsed URL into a connected
TLS stream."""

from __future__ import annotations

import logging
import socket
import ssl
from typing import Optional, Protocol, Tuple
from urllib.parse import SplitResult

from gmi.error import ConnectError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 1965


def address(url: SplitResult) -> Tuple[str, int]:
    """Returns the (host, port) pair to connect to for the URL. The port
    defaults to 1965 when the URL does not specify one."""
    port = url.port
    return url.hostname or "", port if port is not None else DEFAULT_PORT


def host_string(url: SplitResult) -> str:
    """Returns the "host:port" string for the URL, e.g. "some.url:1965".
    IPv6 addresses are enclosed in brackets."""
    host, port = address(url)
    if ":" in host:
        host = f"[{host}]"
    return f"{host}:{port}"


def insecure_context() -> ssl.SSLContext:
    """Returns a TLS client context which performs no certificate or hostname
    verification.

    Gemini servers commonly use self-signed certificates; without a
    trust-on-first-use store this is the only way to talk to them, but it
    offers no protection against an active attacker.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    return context


def verifying_context(
    cafile: Optional[str] = None, capath: Optional[str] = None
) -> ssl.SSLContext:
    """Returns a TLS client context verifying certificates against the system
    trust store, plus any roots found in cafile or capath."""
    context = ssl.create_default_context(cafile=cafile, capath=capath)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    return context


class Stream(Protocol):
    """The subset of the socket API used by the client."""

    def sendall(self, data: bytes) -> None: ...

    def recv(self, bufsize: int) -> bytes: ...

    def settimeout(self, value: Optional[float]) -> None: ...

    def close(self) -> None: ...


class Dialer(Protocol):
    """Protocol for objects that open connections to Gemini servers."""

    def connect(self, url: SplitResult) -> Stream:
        """Connect to the server of the URL, raising ConnectError on failure."""
        ...


class Connector:
    """Connector opens TLS connections to Gemini servers.

    Args:
        ssl_context: TLS settings for the connection, including whether the
            server certificate is verified.
        connect_timeout: Maximum number of seconds to wait for the TCP
            connection and TLS handshake. None blocks indefinitely.
        read_timeout: Socket timeout applied once connected. None blocks
            indefinitely.
    """

    __slots__ = ("ssl_context", "connect_timeout", "read_timeout")

    def __init__(
        self,
        ssl_context: ssl.SSLContext,
        connect_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
    ):
        self.ssl_context = ssl_context
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout

    def connect(self, url: SplitResult) -> ssl.SSLSocket:
        host, port = address(url)
        logger.debug("connecting to %s", host_string(url))
        try:
            sock = socket.create_connection((host, port), timeout=self.connect_timeout)
        except OSError as e:
            raise ConnectError(
                f"failed to connect to '{url.geturl()}': {e}", url=url.geturl()
            ) from e

        try:
            conn = self.ssl_context.wrap_socket(sock, server_hostname=host)
        except OSError as e:
            sock.close()
            raise ConnectError(
                f"failed to connect to '{url.geturl()}': {e}", url=url.geturl()
            ) from e

        conn.settimeout(self.read_timeout)
        return conn
