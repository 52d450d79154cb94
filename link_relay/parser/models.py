# link_relay/parser/models.py
"""
Data models for the metadata extractor: the result record and the tokens
produced by the scanner.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union

Attribute = Tuple[str, str]


@dataclass(slots=True)
class PageMetadata:
    """Title, description and raw (unresolved) favicon reference of a page."""

    title: str = ""
    description: str = ""
    favicon: str = ""

    def is_empty(self) -> bool:
        return not (self.title or self.description or self.favicon)


@dataclass(frozen=True, slots=True)
class StartTag:
    """Opening tag with its attributes in document order.

    Duplicate keys are kept as found; :meth:`get` applies the first-wins
    policy used everywhere in the extractor.
    """

    name: str
    attrs: Tuple[Attribute, ...] = ()

    def get(self, key: str) -> Optional[str]:
        for k, v in self.attrs:
            if k == key:
                return v
        return None


@dataclass(frozen=True, slots=True)
class EndTag:
    name: str


@dataclass(frozen=True, slots=True)
class Text:
    data: str


@dataclass(frozen=True, slots=True)
class Opaque:
    """Anything else the scanner met: comment, doctype, declaration, PI."""

    kind: str
    data: str = ""


@dataclass(frozen=True, slots=True)
class EndOfStream:
    reason: str = "eof"


Token = Union[StartTag, EndTag, Text, Opaque, EndOfStream]

__all__ = ["Attribute", "PageMetadata", "StartTag", "EndTag", "Text", "Opaque", "EndOfStream", "Token"]
