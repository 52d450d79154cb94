"""link_relay.parser: single-pass HTML metadata extraction."""

from link_relay.parser.favicon import build_favicon_tag, resolve_favicon
from link_relay.parser.metadata import MetadataAccumulator, extract_metadata, extract_metadata_async
from link_relay.parser.models import PageMetadata
from link_relay.parser.scanner import HtmlScanner, aiter_tokens, iter_tokens

__all__ = [
    "PageMetadata",
    "HtmlScanner",
    "iter_tokens",
    "aiter_tokens",
    "MetadataAccumulator",
    "extract_metadata",
    "extract_metadata_async",
    "resolve_favicon",
    "build_favicon_tag",
]
