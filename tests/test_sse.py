from __future__ import annotations

import json

from app.services.sse import SSELineBuffer, format_sse_event, parse_data_line


def test_partial_line_is_held_until_newline_arrives():
    buffer = SSELineBuffer()

    assert buffer.feed(b'data: {"a"') == []
    assert buffer.feed(b": 1}\n") == ['data: {"a": 1}']
    assert buffer.feed(b"\nevent: x") == [""]
    assert buffer.flush() == ["event: x"]
    assert buffer.flush() == []


def test_multibyte_character_split_across_chunks():
    encoded = 'data: {"name": "José"}\n'.encode("utf-8")
    split_at = encoded.index(b"\xc3") + 1
    buffer = SSELineBuffer()

    lines = buffer.feed(encoded[:split_at]) + buffer.feed(encoded[split_at:])

    assert lines == ['data: {"name": "José"}']
    assert parse_data_line(lines[0]) == {"name": "José"}


def test_parse_data_line_skips_non_data_and_bad_json():
    assert parse_data_line("event: progress") is None
    assert parse_data_line("data: {not json") is None
    assert parse_data_line("data: [1, 2]") is None
    assert parse_data_line("") is None
    assert parse_data_line('data: {"ok": true}') == {"ok": True}


def test_format_sse_event():
    frame = format_sse_event("company_done", {"current": 1})

    assert frame == 'event: company_done\ndata: {"current": 1}\n\n'
    lines = frame.split("\n")
    assert json.loads(lines[1][len("data: ") :]) == {"current": 1}
