# link_relay/fetcher.py
"""
Fetcher: downloads a redirect target and runs the metadata extractor over
the streamed body, with a deadline and a byte cap.
"""
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable, AsyncIterator

from aiohttp import ClientError, ClientSession

from link_relay.logger import get_logger
from link_relay.parser import PageMetadata, extract_metadata_async

__all__ = ("FetchError", "fetch_metadata")

log = get_logger("fetcher")


class FetchError(Exception):
    """The target could not be fetched (network error, timeout, non-200)."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


async def _capped(chunks: AsyncIterable[bytes], limit: int) -> AsyncIterator[bytes]:
    """Pass chunks through until *limit* bytes have been seen."""
    seen = 0
    async for chunk in chunks:
        remaining = limit - seen
        if remaining <= 0:
            log.debug("Body cap of %d bytes reached", limit)
            return
        if len(chunk) > remaining:
            chunk = chunk[:remaining]
        seen += len(chunk)
        yield chunk


async def fetch_metadata(
    session: ClientSession,
    url: str,
    *,
    timeout: float,
    max_body_bytes: int,
    chunk_size: int = 8192,
    user_agent: str | None = None,
) -> PageMetadata:
    """GET *url* and extract its metadata.

    Raises :class:`FetchError` when the request fails, the status is not
    200 or the whole operation exceeds *timeout* seconds; a partially
    read page is discarded in that case.
    """
    headers = {"User-Agent": user_agent} if user_agent else {}

    async def _run() -> PageMetadata:
        async with session.get(url, headers=headers, raise_for_status=False) as resp:
            if resp.status != 200:
                raise FetchError(url, f"HTTP {resp.status}")
            chunks = _capped(resp.content.iter_chunked(chunk_size), max_body_bytes)
            return await extract_metadata_async(chunks, encoding=resp.charset)

    try:
        meta = await asyncio.wait_for(_run(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        log.warning("Fetching %s did not finish within %s seconds", url, timeout)
        raise FetchError(url, "timeout") from exc
    except ClientError as exc:
        log.warning("Fetching %s failed: %s", url, exc)
        raise FetchError(url, str(exc) or type(exc).__name__) from exc
    except FetchError as exc:
        log.warning("Fetching %s failed: %s", url, exc.reason)
        raise
    log.debug("Metadata for %s: %s", url, meta)
    return meta
