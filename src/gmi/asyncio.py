"""asyncio flavour of the Gemini client.

Fetches made with AsyncClient can be cancelled like any other coroutine, for
example by wrapping them in asyncio.wait_for.
"""

from __future__ import annotations

import asyncio
import logging
import ssl
import time
from datetime import timedelta
from typing import List, Optional, Tuple
from urllib.parse import SplitResult

from typing_extensions import assert_never

from gmi.client import (
    HEADER_MAX_LEN,
    READ_SIZE,
    ClientConfig,
    Option,
    Response,
    check_mime_type,
    normalize_url,
    parse_header,
    redirect_target,
)
from gmi.error import (
    BodyReadError,
    ConnectError,
    HeaderParseError,
    HeaderReadError,
    SendError,
    TimeoutError,
    error_for_status,
)
from gmi.status import StatusClass, lookup
from gmi.transport import address, host_string, verifying_context

logger = logging.getLogger(__name__)


class AsyncClient:
    """AsyncClient is a variant of Client which fetches URLs with asyncio
    streams instead of blocking sockets.

    It accepts the same option functions as Client, except for dialer which
    only applies to blocking clients.
    """

    __slots__ = ("config", "_ssl_context")

    def __init__(self, *options: Option):
        config = ClientConfig()
        for option in options:
            config = option(config)
        if config.dialer is not None:
            raise ValueError("AsyncClient does not support custom dialers")
        self.config = config
        self._ssl_context = config.ssl_context or verifying_context()

    async def _connect(
        self, url: SplitResult
    ) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        host, port = address(url)
        logger.debug("connecting to %s", host_string(url))
        try:
            return await asyncio.wait_for(
                asyncio.open_connection(
                    host, port, ssl=self._ssl_context, server_hostname=host
                ),
                self.config.connect_timeout,
            )
        except (OSError, asyncio.TimeoutError) as e:
            raise ConnectError(
                f"failed to connect to '{url.geturl()}': {e}", url=url.geturl()
            ) from e

    async def _read(self, coro, url: str, error: type):
        try:
            return await asyncio.wait_for(coro, self.config.read_timeout)
        except asyncio.TimeoutError as e:
            raise TimeoutError(
                f"timed out reading response from '{url}'", url=url
            ) from e
        except OSError as e:
            raise error(f"could not read response: {e}", url=url) from e

    async def _read_header(self, reader: asyncio.StreamReader, url: str):
        try:
            line = await self._read(reader.readuntil(b"\n"), url, HeaderReadError)
        except asyncio.IncompleteReadError as e:
            raise HeaderReadError(
                "could not read response header: unexpected end of stream", url=url
            ) from e
        except asyncio.LimitOverrunError as e:
            raise HeaderReadError(
                f"could not read response header: longer than {HEADER_MAX_LEN} bytes",
                url=url,
            ) from e

        if len(line) > HEADER_MAX_LEN:
            raise HeaderReadError(
                f"could not read response header: longer than {HEADER_MAX_LEN} bytes",
                url=url,
            )
        try:
            return parse_header(line.decode())
        except UnicodeDecodeError as e:
            raise HeaderParseError(
                f"could not parse response header: {e}", url=url
            ) from e
        except HeaderParseError as e:
            e.url = url
            raise

    async def _read_body(self, reader: asyncio.StreamReader, url: str) -> bytes:
        chunks = []
        while True:
            chunk = await self._read(reader.read(READ_SIZE), url, BodyReadError)
            if not chunk:
                return b"".join(chunks)
            chunks.append(chunk)

    async def get(self, url: str) -> Response:
        """Fetch a Gemini URL, following redirects.

        Raises:
            GeminiError: a subclass describing why the fetch failed.
        """
        start = time.monotonic()
        redirects: List[str] = []

        target = normalize_url(url)
        while True:
            current = target.geturl()
            logger.debug("requesting %s", current)
            reader, writer = await self._connect(target)
            try:
                try:
                    writer.write(f"{current}\r\n".encode())
                    await writer.drain()
                except OSError as e:
                    raise SendError(
                        f"could not send request to server: {e}", url=current
                    ) from e

                code, meta = await self._read_header(reader, current)
                logger.debug("received header %d %r from %s", code, meta, current)

                status = lookup(code)
                if status is None:
                    raise error_for_status(current, code, meta)

                category = status.status_class
                match category:
                    case StatusClass.SUCCESS:
                        check_mime_type(current, meta)
                        body = await self._read_body(reader, current)
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
            finally:
                writer.close()
                try:
                    await writer.wait_closed()
                except (OSError, ssl.SSLError) as e:
                    logger.debug("error closing connection to %s: %s", current, e)

            target = redirect_target(target, meta, redirects, self.config.max_redirects)
