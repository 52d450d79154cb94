# link_relay/parser/metadata.py
"""
Single-pass metadata accumulator.

Consumes scanner tokens and fills a :class:`PageMetadata`:

* ``title`` – text token that immediately follows the first ``<title>``;
* ``description`` – ``content`` of the first ``<meta name="description">``;
* ``favicon`` – raw ``href`` of the first ``<link rel="icon">`` or
  ``<link rel="shortcut icon">``.

Every field is first-wins and never overwritten, so the pass may stop as
soon as all three are filled; otherwise it runs to :class:`EndOfStream`.
Nothing found is a normal result, not an error.
"""
from __future__ import annotations

from collections.abc import AsyncIterable
from typing import Iterable, Optional

from link_relay.logger import get_logger
from link_relay.parser.models import EndOfStream, PageMetadata, StartTag, Text, Token
from link_relay.parser.scanner import DEFAULT_CHUNK_SIZE, ByteSource, aiter_tokens, iter_tokens

__all__ = ("MetadataAccumulator", "extract_metadata", "extract_metadata_async")

log = get_logger("parser")

_ICON_RELS = frozenset({"icon", "shortcut icon"})


def _folded(value: Optional[str]) -> str:
    """Lower-case and collapse whitespace, for keyword attribute comparison."""
    return " ".join((value or "").lower().split())


class MetadataAccumulator:
    """Feed tokens with :meth:`consume` until it returns ``True``."""

    def __init__(self) -> None:
        self._meta = PageMetadata()
        self._title_armed = True
        self._description_found = False
        self._awaiting_title = False
        self._done = False

    @property
    def metadata(self) -> PageMetadata:
        return self._meta

    @property
    def done(self) -> bool:
        return self._done

    @property
    def complete(self) -> bool:
        """All three fields are set; nothing later in the document can change them."""
        meta = self._meta
        return bool(meta.title and meta.description and meta.favicon)

    def consume(self, token: Token) -> bool:
        if self._done:
            return True
        if self._awaiting_title:
            self._awaiting_title = False
            if isinstance(token, Text):
                self._meta.title = token.data
        if isinstance(token, EndOfStream):
            log.debug("Scan ended (%s)", token.reason)
            self._done = True
        elif isinstance(token, StartTag):
            self._on_start_tag(token)
        return self._done

    def _on_start_tag(self, tag: StartTag) -> None:
        if tag.name == "title":
            if self._title_armed:
                self._title_armed = False
                self._awaiting_title = True
        elif tag.name == "meta":
            if self._description_found:
                return
            content = tag.get("content")
            if _folded(tag.get("name")) == "description" and content is not None:
                self._description_found = True
                self._meta.description = content
        elif tag.name == "link":
            if self._meta.favicon:
                return
            href = tag.get("href")
            if _folded(tag.get("rel")) in _ICON_RELS and href:
                self._meta.favicon = href


def extract_metadata(
    source: ByteSource,
    encoding: Optional[str] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> PageMetadata:
    """Run one extraction pass over a byte stream and return the record.

    Parameters
    ----------
    source
        Binary file object (anything with ``read(n)``), ``bytes`` or an
        iterable of ``bytes`` chunks.
    encoding
        Charset known from the transport (``Content-Type``), if any.
    chunk_size
        Read size used for file objects and ``bytes`` input.
    """
    acc = MetadataAccumulator()
    tokens: Iterable[Token] = iter_tokens(source, encoding=encoding, chunk_size=chunk_size)
    for token in tokens:
        if acc.consume(token) or acc.complete:
            break
    return acc.metadata


async def extract_metadata_async(
    chunks: AsyncIterable[bytes],
    encoding: Optional[str] = None,
) -> PageMetadata:
    """Same as :func:`extract_metadata`, reading from an async chunk iterator."""
    acc = MetadataAccumulator()
    tokens = aiter_tokens(chunks, encoding=encoding)
    try:
        async for token in tokens:
            if acc.consume(token) or acc.complete:
                break
    finally:
        await tokens.aclose()
    return acc.metadata
