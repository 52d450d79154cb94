# link_relay/parser/scanner.py
"""
Incremental HTML tokenizer.

:class:`HtmlScanner` turns raw bytes into a forward-only sequence of
tokens (:mod:`link_relay.parser.models`).  It never builds a tree and never
aborts on bad markup: unknown tags, unclosed tags and stray text are passed
through, exotic declarations become :class:`Opaque` tokens.  A decoding
error or a parser failure simply ends the sequence with
:class:`EndOfStream`.

Only the first kilobyte is held back, to pick the character encoding
(BOM, caller-supplied charset, ``<meta charset>``, UTF-8 in that order);
everything after it is decoded and tokenized chunk by chunk.
"""
from __future__ import annotations

import codecs
from collections.abc import AsyncGenerator, AsyncIterable, Iterable, Iterator
from html.parser import HTMLParser
from typing import BinaryIO, List, Optional, Tuple, Union

from aiohttp import ClientPayloadError
from bs4.dammit import EncodingDetector

from link_relay.logger import get_logger
from link_relay.parser.models import EndOfStream, EndTag, Opaque, StartTag, Text, Token

__all__ = ("HtmlScanner", "iter_tokens", "aiter_tokens", "DEFAULT_CHUNK_SIZE")

log = get_logger("parser")

DEFAULT_CHUNK_SIZE = 8192
_SNIFF_BYTES = 1024
_FALLBACK_ENCODING = "utf-8"

ByteSource = Union[bytes, bytearray, memoryview, BinaryIO, Iterable[bytes]]


class _TokenCollector(HTMLParser):
    """HTMLParser callbacks recorded as tokens; adjacent text is merged."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._tokens: List[Token] = []
        self._text: List[str] = []

    def flush_text(self) -> None:
        if self._text:
            self._tokens.append(Text("".join(self._text)))
            self._text.clear()

    def drain(self) -> List[Token]:
        tokens, self._tokens = self._tokens, []
        return tokens

    def _push(self, token: Token) -> None:
        self.flush_text()
        self._tokens.append(token)

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self._push(StartTag(tag, tuple((k, v or "") for k, v in attrs)))

    def handle_endtag(self, tag: str) -> None:
        self._push(EndTag(tag))

    def handle_data(self, data: str) -> None:
        if data:
            self._text.append(data)

    def handle_comment(self, data: str) -> None:
        self._push(Opaque("comment", data))

    def handle_decl(self, decl: str) -> None:
        self._push(Opaque("declaration", decl))

    def unknown_decl(self, data: str) -> None:
        self._push(Opaque("declaration", data))

    def handle_pi(self, data: str) -> None:
        self._push(Opaque("pi", data))

    def parse_marked_section(self, i: int, report: int = 1) -> int:
        # unknown "<![keyword" sections are read as bogus comments up to the next ">"
        try:
            return super().parse_marked_section(i, report)
        except AssertionError:
            end = self.rawdata.find(">", i + 3)
            if end < 0:
                return -1
            self._push(Opaque("declaration", self.rawdata[i + 2:end]))
            return end + 1



def _pick_encoding(head: bytes, declared: Optional[str]) -> Tuple[bytes, str]:
    """Return *head* without a BOM and the codec name to decode the stream with."""
    data, bom_encoding = EncodingDetector.strip_byte_order_mark(head)
    candidates = [bom_encoding, declared]
    if bom_encoding is None:
        meta = EncodingDetector.find_declared_encoding(head, is_html=True)
        # a utf-16/32 <meta> without a BOM cannot be true for ASCII-compatible markup
        if meta and not meta.lower().startswith(("utf-16", "utf-32")):
            candidates.append(meta)
    for name in candidates:
        if not name:
            continue
        try:
            return data, codecs.lookup(name).name
        except LookupError:
            log.debug("Unknown encoding %r, trying next candidate", name)
    return data, _FALLBACK_ENCODING


class HtmlScanner:
    """Push-style scanner: ``feed()`` bytes, get the tokens completed so far.

    The last list returned (by ``close()`` or by a ``feed()`` that hit a
    decoding error) ends with :class:`EndOfStream`; after that the scanner
    ignores further input.
    """

    def __init__(self, encoding: Optional[str] = None) -> None:
        self._declared = encoding
        self._head = bytearray()
        self._decoder: Optional[codecs.IncrementalDecoder] = None
        self._parser = _TokenCollector()
        self._finished = False
        self.encoding: Optional[str] = None

    @property
    def finished(self) -> bool:
        return self._finished

    def feed(self, chunk: bytes) -> List[Token]:
        if self._finished or not chunk:
            return []
        if self._decoder is None:
            self._head.extend(chunk)
            if len(self._head) < _SNIFF_BYTES:
                return []
            return self._push(self._start(), final=False)
        return self._push(bytes(chunk), final=False)

    def close(self, reason: str = "eof") -> List[Token]:
        if self._finished:
            return []
        data = self._start() if self._decoder is None else b""
        return self._push(data, final=True, reason=reason)

    # ------------------------------------------------------------------ #
    def _start(self) -> bytes:
        head = bytes(self._head)
        self._head.clear()
        data, self.encoding = _pick_encoding(head, self._declared)
        log.debug("Decoding document as %s", self.encoding)
        self._decoder = codecs.getincrementaldecoder(self.encoding)(errors="strict")
        return data

    def _push(self, data: bytes, *, final: bool, reason: str = "eof") -> List[Token]:
        if self._decoder is None:
            raise RuntimeError("decoder used before the encoding was chosen")
        try:
            text = self._decoder.decode(data, final=final)
        except UnicodeDecodeError as exc:
            log.debug("Stopping scan on undecodable input: %s", exc)
            # keep what decoded cleanly, then end the stream
            text = exc.object[:exc.start].decode(self.encoding, errors="ignore")
            final, reason = True, "decode-error"
        try:
            if text:
                self._parser.feed(text)
            if final:
                self._parser.close()
        except AssertionError as exc:
            # last resort for declarations _markupbase still refuses
            log.debug("Stopping scan on unparsable markup: %s", exc)
            return self._finish("parse-error")
        if final:
            return self._finish(reason)
        return self._parser.drain()

    def _finish(self, reason: str) -> List[Token]:
        self._finished = True
        self._parser.flush_text()
        return [*self._parser.drain(), EndOfStream(reason)]


def _iter_chunks(source: ByteSource, chunk_size: int) -> Iterator[bytes]:
    if isinstance(source, str):
        raise TypeError("expected a byte stream, got str")
    if isinstance(source, (bytes, bytearray, memoryview)):
        data = bytes(source)
        for start in range(0, len(data), chunk_size):
            yield data[start:start + chunk_size]
        return
    read = getattr(source, "read", None)
    if callable(read):
        while True:
            chunk = read(chunk_size)
            if not chunk:
                return
            yield chunk
    else:
        yield from source


def iter_tokens(
    source: ByteSource,
    encoding: Optional[str] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Iterator[Token]:
    """Lazily tokenize a binary file object, a bytes object or an iterable of chunks."""
    scanner = HtmlScanner(encoding)
    for chunk in _iter_chunks(source, chunk_size):
        yield from scanner.feed(chunk)
        if scanner.finished:
            return
    yield from scanner.close()


async def aiter_tokens(
    chunks: AsyncIterable[bytes],
    encoding: Optional[str] = None,
) -> AsyncGenerator[Token, None]:
    """Async counterpart of :func:`iter_tokens` for streamed response bodies.

    A truncated payload ends the sequence like a normal EOF; timeouts and
    cancellation propagate to the caller.
    """
    scanner = HtmlScanner(encoding)
    iterator = chunks.__aiter__()
    while True:
        try:
            chunk = await anext(iterator)
        except StopAsyncIteration:
            break
        except ClientPayloadError as exc:
            log.debug("Response body truncated: %s", exc)
            for token in scanner.close(reason="truncated"):
                yield token
            return
        for token in scanner.feed(chunk):
            yield token
        if scanner.finished:
            return
    for token in scanner.close():
        yield token
