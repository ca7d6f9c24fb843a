"""A Gemini protocol client, with tools to format gemtext for the terminal."""

from __future__ import annotations

from gmi.asyncio import AsyncClient
from gmi.client import (
    MIME_TYPE,
    SCHEME,
    URL_MAX_LEN,
    Client,
    ClientConfig,
    Option,
    Response,
    default_client,
    dialer,
    get,
    insecure,
    max_redirects,
    read_timeout,
    timeout,
    tls_context,
    verify,
)
from gmi.error import GeminiError
from gmi.status import Status, StatusClass, status_line, status_text
from gmi.transport import DEFAULT_PORT

__all__ = [
    "AsyncClient",
    "Client",
    "ClientConfig",
    "DEFAULT_PORT",
    "GeminiError",
    "MIME_TYPE",
    "Option",
    "Response",
    "SCHEME",
    "Status",
    "StatusClass",
    "URL_MAX_LEN",
    "default_client",
    "dialer",
    "get",
    "insecure",
    "max_redirects",
    "read_timeout",
    "status_line",
    "status_text",
    "timeout",
    "tls_context",
    "verify",
]
