# File: tests/conftest.py
from collections.abc import AsyncIterator

import pytest
from aiohttp import web

from link_relay.config import RelayConfig

SAMPLE_HTML = (
    b'<html><head><link rel="shortcut icon" href="favicon.png">'
    b'<title>Hi</title><meta name="description" content="d"></head></html>'
)


@pytest.fixture()
def sample_html() -> bytes:
    """The end-to-end document: shortcut icon, title and description."""
    return SAMPLE_HTML


@pytest.fixture()
def relay_config() -> RelayConfig:
    """
    Return a RelayConfig suitable for tests: short deadline, no chat.
    """
    return RelayConfig(
        host="localhost",
        port=0,
        fetch_timeout=2.0,
        max_body_bytes=64 * 1024,
        chunk_size=64,
        user_agent="TestAgent/1.0",
    )


async def serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()
