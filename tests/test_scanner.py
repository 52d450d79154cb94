# File: tests/test_scanner.py
import io

import pytest
from aiohttp import ClientPayloadError

from link_relay.parser.models import EndOfStream, EndTag, Opaque, StartTag, Text
from link_relay.parser.scanner import HtmlScanner, aiter_tokens, iter_tokens


def tokens_of(data, **kwargs):
    return list(iter_tokens(data, **kwargs))


def test_basic_token_sequence():
    tokens = tokens_of(b'<p class="a">hello</p>')
    assert tokens == [
        StartTag("p", (("class", "a"),)),
        Text("hello"),
        EndTag("p"),
        EndOfStream(),
    ]


def test_empty_input_yields_only_end_of_stream():
    tokens = tokens_of(b"")
    assert len(tokens) == 1
    assert isinstance(tokens[0], EndOfStream)


def test_tag_and_attribute_names_are_lowercased_and_duplicates_kept():
    (tag, *_rest) = tokens_of(b'<LINK REL="icon" rel="other" HREF="/a.ico">')
    assert tag.name == "link"
    assert tag.attrs == (("rel", "icon"), ("rel", "other"), ("href", "/a.ico"))
    assert tag.get("rel") == "icon"
    assert tag.get("missing") is None


def test_boolean_attribute_has_empty_value():
    (tag, *_rest) = tokens_of(b"<input disabled>")
    assert tag.attrs == (("disabled", ""),)


def test_text_split_across_chunks_is_one_token():
    padding = b"<!--" + b"x" * 1100 + b"-->"
    chunks = [padding + b"<title>Hel", b"lo wo", b"rld</title>"]
    texts = [t for t in tokens_of(chunks) if isinstance(t, Text)]
    assert texts == [Text("Hello world")]


def test_small_chunk_size_gives_same_tokens_as_one_chunk():
    html = (
        b"<html><head><!--" + b"pad " * 300 + b"--><title>T</title>"
        b"<meta name=\"x\" content=\"y\"></head><body>b</body></html>"
    )
    assert tokens_of(html, chunk_size=3) == tokens_of(html)


def test_comments_and_doctype_are_opaque():
    tokens = tokens_of(b"<!DOCTYPE html><!-- note --><p>x</p>")
    assert tokens[0] == Opaque("declaration", "DOCTYPE html")
    assert tokens[1] == Opaque("comment", " note ")


def test_malformed_markup_does_not_abort():
    html = b'<div <<< ="x"><p unclosed>\n<title>After</title> stray > text <a href=\'q>'
    tokens = tokens_of(html)
    assert isinstance(tokens[-1], EndOfStream)
    assert any(isinstance(t, StartTag) and t.name == "title" for t in tokens)


def test_file_object_source():
    tokens = tokens_of(io.BytesIO(b"<b>x</b>"), chunk_size=2)
    assert [type(t) for t in tokens] == [StartTag, Text, EndTag, EndOfStream]


def test_str_source_is_rejected():
    with pytest.raises(TypeError):
        tokens_of("<p>text</p>")


def test_entities_are_decoded():
    tokens = tokens_of(b"<p>a &amp; b</p>")
    assert Text("a & b") in tokens


def test_invalid_utf8_ends_the_sequence():
    html = b"<title>ok</title>" + b"\xff\xfe\xfd" + b"<p>never seen</p>"
    tokens = tokens_of(html)
    assert isinstance(tokens[-1], EndOfStream)
    assert tokens[-1].reason == "decode-error"
    assert Text("ok") in tokens
    assert not any(isinstance(t, StartTag) and t.name == "p" for t in tokens)


def test_meta_charset_is_honoured():
    html = '<meta charset="windows-1251"><title>Привет</title>'.encode("cp1251")
    scanner = HtmlScanner()
    tokens = scanner.feed(html) + scanner.close()
    assert scanner.encoding == "cp1251"
    assert Text("Привет") in tokens


def test_transport_encoding_wins_over_meta():
    html = '<meta charset="utf-8"><title>café</title>'.encode("latin-1")
    tokens = tokens_of(html, encoding="latin-1")
    assert Text("café") in tokens


def test_utf8_bom_is_stripped():
    tokens = tokens_of(b"\xef\xbb\xbf<title>x</title>")
    assert tokens[0] == StartTag("title")


def test_unknown_encoding_falls_back_to_utf8():
    scanner = HtmlScanner(encoding="no-such-codec")
    scanner.feed(b"<p>x</p>")
    scanner.close()
    assert scanner.encoding == "utf-8"


def test_feed_after_end_is_ignored():
    scanner = HtmlScanner()
    scanner.feed(b"<p>")
    assert isinstance(scanner.close()[-1], EndOfStream)
    assert scanner.finished
    assert scanner.feed(b"<title>late</title>") == []
    assert scanner.close() == []


def test_scanner_is_lazy():
    produced = []

    def chunks():
        for chunk in (b"<title>a</title>", b"x" * 2048, b"<p>tail</p>"):
            produced.append(chunk)
            yield chunk

    tokens = iter_tokens(chunks())
    assert next(tokens) == StartTag("title")
    assert len(produced) < 3


async def _agen(chunks, error=None):
    for chunk in chunks:
        yield chunk
    if error is not None:
        raise error


@pytest.mark.asyncio()
async def test_async_tokens_match_sync_tokens(sample_html):
    tokens = [t async for t in aiter_tokens(_agen([sample_html[:10], sample_html[10:]]))]
    assert tokens == tokens_of(sample_html)


@pytest.mark.asyncio()
async def test_truncated_payload_ends_sequence():
    source = _agen([b"<p>partial"], error=ClientPayloadError("truncated"))
    tokens = [t async for t in aiter_tokens(source)]
    assert Text("partial") in tokens
    assert tokens[-1] == EndOfStream("truncated")


def test_unknown_marked_section_is_skipped_like_a_comment():
    tokens = tokens_of(b'<p>see <![x here</p><title>Kept</title>')
    assert any(isinstance(t, Opaque) and "x here" in t.data for t in tokens)
    assert StartTag("title") in tokens
    assert Text("Kept") in tokens
    assert tokens[-1] == EndOfStream()
