# link_relay/server.py
"""
HTTP front end of LinkRelay.

Every request is reported to the chat (client IP) and, when it carries a
``redirect`` query parameter, answered with a preview page of the target:
its title, description and favicon plus a meta-refresh to the target.
"""
from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Optional
from urllib.parse import urlsplit

from aiohttp import ClientSession, web

from link_relay.config import RelayConfig
from link_relay.fetcher import FetchError, fetch_metadata
from link_relay.logger import get_logger
from link_relay.notify import Notifier, NullNotifier, TelegramNotifier
from link_relay.render import render_redirect_page

__all__ = ("CONFIG_KEY", "NOTIFIER_KEY", "SESSION_KEY", "client_ip", "create_app", "run_server")

log = get_logger("server")

CONFIG_KEY = web.AppKey("config", RelayConfig)
NOTIFIER_KEY = web.AppKey("notifier", Notifier)
SESSION_KEY = web.AppKey("session", ClientSession)

NO_REDIRECT_TEXT = "IP Address logged, but no redirect URL provided"


def client_ip(request: web.Request, trust_forwarded_for: bool = True) -> str:
    """First ``X-Forwarded-For`` hop if present, else the peer address."""
    if trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.remote or "unknown"


def is_valid_target(url: str) -> bool:
    """Only absolute http(s) URLs with a host are fetched."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.hostname)


async def handle_visit(request: web.Request) -> web.Response:
    cfg = request.app[CONFIG_KEY]
    log.debug("headers: %s", dict(request.headers))

    message = f"IP Address: {client_ip(request, cfg.trust_forwarded_for)}"
    log.info(message)
    request.app[NOTIFIER_KEY].notify_in_background(message)

    redirect_url = request.query.get("redirect", "")
    if not redirect_url:
        return web.Response(text=NO_REDIRECT_TEXT)
    if not is_valid_target(redirect_url):
        raise web.HTTPBadRequest(text="Invalid URL")

    try:
        meta = await fetch_metadata(
            request.app[SESSION_KEY],
            redirect_url,
            timeout=cfg.fetch_timeout,
            max_body_bytes=cfg.max_body_bytes,
            chunk_size=cfg.chunk_size,
            user_agent=cfg.user_agent,
        )
    except FetchError:
        raise web.HTTPInternalServerError(text="Failed to fetch redirect target")

    page = render_redirect_page(
        meta,
        redirect_url,
        fallback_title=cfg.fallback_title,
        template_dir=cfg.template_dir,
    )
    return web.Response(text=page, content_type="text/html")


def create_app(config: RelayConfig, *, notifier: Optional[Notifier] = None) -> web.Application:
    """Build the application; the HTTP client session lives as long as the app."""
    app = web.Application()
    app[CONFIG_KEY] = config

    async def _client_session(app: web.Application) -> AsyncIterator[None]:
        async with ClientSession() as session:
            app[SESSION_KEY] = session
            if notifier is not None:
                active = notifier
            elif config.telegram is not None:
                active = TelegramNotifier(session, config.telegram)
            else:
                log.warning("TELEGRAM_BOT_TOKEN or TELEGRAM_CHAT_ID is not set, notifications disabled")
                active = NullNotifier()
            app[NOTIFIER_KEY] = active
            yield
            await active.aclose()

    app.cleanup_ctx.append(_client_session)
    app.router.add_get("/{tail:.*}", handle_visit)
    return app


def run_server(config: RelayConfig) -> None:
    """Serve until interrupted."""
    log.info("Server is running on %s:%s", config.host, config.port)
    web.run_app(create_app(config), host=config.host, port=config.port, print=None)
