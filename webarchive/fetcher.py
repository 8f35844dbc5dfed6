"""
HTTP fetcher: one HEAD or GET per call, timed, with the body streamed under a
size cap. Transport failures come back as a FetchResult, never as exceptions.
"""

import asyncio
import time
from datetime import datetime
from typing import List, Optional, Tuple

import httpx
import structlog

from .models import UNKNOWN, utcnow

logger = structlog.get_logger(__name__)

HTML_TYPES = ("text/html", "application/xhtml+xml")


class FetchResult:
    def __init__(
        self,
        url: str,
        method: str,
        status_code: int = UNKNOWN,
        content: bytes = b"",
        headers: Optional[List[Tuple[str, str]]] = None,
        final_url: Optional[str] = None,
        duration_ms: int = 0,
        error: Optional[str] = None,
        content_type: str = "",
        content_length: int = UNKNOWN,
        started: Optional[datetime] = None,
    ):
        """HTTP response data and timing for one HEAD or GET attempt."""
        self.url = url
        self.method = method
        self.status_code = status_code
        self.content = content
        self.headers = headers or []
        self.final_url = final_url or url
        self.duration_ms = duration_ms
        self.error = error
        self.content_type = content_type
        self.content_length = content_length
        self.started = started or utcnow()

    @property
    def success(self) -> bool:
        """True when a response was received; the status code may still be an error."""
        return self.error is None

    @property
    def is_html(self) -> bool:
        return self.content_type.lower().startswith(HTML_TYPES)

    @property
    def size(self) -> int:
        return len(self.content)


class ResponseTooLarge(Exception):
    pass


class HTTPFetcher:
    def __init__(self, config: Optional[dict] = None, client: Optional[httpx.AsyncClient] = None):
        """Initialize the fetcher from the ``fetcher`` config section."""
        config = config or {}
        self.user_agent = config.get("user_agent", "webarchive/1.0")
        self.timeout = float(config.get("timeout", 30.0))
        self.max_redirects = int(config.get("max_redirects", 5))
        self.max_response_size = int(config.get("max_response_size", 100 * 1024 * 1024))

        headers = {
            "User-Agent": self.user_agent,
            "Accept": "*/*",
        }
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=True,
            max_redirects=self.max_redirects,
            headers=headers,
            limits=httpx.Limits(
                max_connections=int(config.get("max_connections", 20)),
                max_keepalive_connections=10,
            ),
        )

    async def fetch(self, url: str, method: str = "GET") -> FetchResult:
        """Perform a HEAD or GET. Never raises; failures come back with ``error`` set."""
        method = method.upper()
        started = utcnow()
        start_time = time.monotonic()

        def elapsed() -> int:
            return int((time.monotonic() - start_time) * 1000)

        try:
            return await asyncio.wait_for(
                self._request(url, method, started, elapsed), timeout=self.timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            error = f"Timeout after {self.timeout}s: {e}"
            logger.warning("fetch_timeout", url=url, method=method, timeout=self.timeout)
        except ResponseTooLarge as e:
            error = str(e)
            logger.warning("fetch_too_large", url=url, method=method, error=error)
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as e:
            error = f"{type(e).__name__}: {e}"
            logger.warning("fetch_failed", url=url, method=method, error=error)

        return FetchResult(
            url=url,
            method=method,
            status_code=UNKNOWN,
            duration_ms=elapsed(),
            error=error,
            started=started,
        )

    async def _request(self, url: str, method: str, started: datetime, elapsed) -> FetchResult:
        async with self._client.stream(method, url) as response:
            declared = response.headers.get("content-length")
            content_length = UNKNOWN
            if declared and declared.isdigit():
                content_length = int(declared)
                if method == "GET" and content_length > self.max_response_size:
                    raise ResponseTooLarge(
                        f"Content too large: {content_length} bytes > {self.max_response_size} bytes"
                    )

            content = b""
            if method == "GET":
                chunks = []
                received = 0
                async for chunk in response.aiter_bytes(chunk_size=65536):
                    received += len(chunk)
                    if received > self.max_response_size:
                        raise ResponseTooLarge(
                            f"Content too large: over {self.max_response_size} bytes"
                        )
                    chunks.append(chunk)
                content = b"".join(chunks)
                if content_length == UNKNOWN:
                    content_length = len(content)

            return FetchResult(
                url=url,
                method=method,
                status_code=response.status_code,
                content=content,
                headers=list(response.headers.multi_items()),
                final_url=str(response.url),
                duration_ms=elapsed(),
                content_type=response.headers.get("content-type", ""),
                content_length=content_length,
                started=started,
            )

    async def close(self):
        await self._client.aclose()
