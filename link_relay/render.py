"""link_relay.render: redirect page rendering with Jinja2."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Optional, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from link_relay.parser import PageMetadata, build_favicon_tag

__all__ = ["TEMPLATE_NAME", "render_redirect_page"]

TEMPLATE_NAME = "redirect.html.j2"
_BUNDLED_TEMPLATES = Path(__file__).parent / "templates"


@lru_cache(maxsize=8)
def _environment(template_dir: Path) -> Environment:
    return Environment(
        loader=FileSystemLoader(str(template_dir)),
        autoescape=select_autoescape(["html", "xml", "html.j2"]),
    )


def render_redirect_page(
    metadata: PageMetadata,
    redirect_url: str,
    *,
    fallback_title: str = "Redirecting...",
    template_dir: Optional[Union[Path, str]] = None,
) -> str:
    """Render the meta-refresh page that previews *redirect_url*.

    Args:
        metadata: result of the extraction pass over the target.
        redirect_url: target the page forwards to; also the base URL for
            the favicon reference.
        fallback_title: used when the target has no title.
        template_dir: directory with ``redirect.html.j2``; the bundled
            template is used by default.

    Returns:
        The HTML document as a string.  Title, description and URL are
        escaped by the template engine.
    """
    env = _environment(Path(template_dir) if template_dir else _BUNDLED_TEMPLATES)
    template = env.get_template(TEMPLATE_NAME)

    context: dict[str, Any] = {
        "redirect_url": redirect_url,
        "title": metadata.title or fallback_title,
        "description": metadata.description,
        "favicon_tag": build_favicon_tag(metadata.favicon, redirect_url),
    }
    return template.render(**context)
