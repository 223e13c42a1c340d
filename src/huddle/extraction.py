"""
Attachment text extraction -- best-effort text for the newest message.

The orchestrator only needs a `(url, content_type) -> text` coroutine.
HttpTextExtractor provides one for plain text and CSV (first 200 lines);
other types return "" and still reach the model as file references.

Security:
  - URLs are checked with validate_url before fetching (anti-SSRF)
  - The body is streamed and reading stops once it passes the size cap
"""

import logging

import httpx

from .security import validate_url

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30
MAX_RESPONSE_BYTES = 10_000_000
CSV_PREVIEW_LINES = 200

TEXT_CONTENT_TYPES = {"text/plain", "text/csv"}


class HttpTextExtractor:
    """
    Fetch an attachment over HTTP and return its text.

    Usage:
        extractor = HttpTextExtractor()
        text = await extractor("https://files.example.com/notes.txt", "text/plain")
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        allow_private: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
        max_bytes: int = MAX_RESPONSE_BYTES,
    ):
        self._timeout = timeout
        self._max_bytes = max_bytes
        self._allow_private = allow_private
        self._transport = transport

    async def __call__(self, url: str, content_type: str) -> str:
        if content_type not in TEXT_CONTENT_TYPES:
            return ""

        validate_url(url, "attachment url", allow_private=self._allow_private)

        body = bytearray()
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                async for chunk in response.aiter_bytes():
                    body.extend(chunk)
                    if len(body) > self._max_bytes:
                        raise ValueError(
                            f"Attachment larger than {self._max_bytes} bytes; stopped reading"
                        )
        text = body.decode("utf-8", errors="replace")

        logger.debug(f"[Extraction] Fetched {len(text)} chars ({content_type})")
        if content_type == "text/csv":
            lines = text.splitlines()[:CSV_PREVIEW_LINES]
            return f"CSV preview (first {CSV_PREVIEW_LINES} lines):\n" + "\n".join(lines)
        return text
