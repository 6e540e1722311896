"""Tests for keyrouter.core.normalizer."""

from __future__ import annotations

import json

from keyrouter.core.normalizer import normalize_content, normalize_messages


def test_plain_text_messages_are_unchanged():
    messages = [
        {"role": "developer", "content": "Be brief."},
        {"role": "user", "content": "[not json"},
        {"role": "assistant", "content": "Sure."},
    ]

    once = normalize_messages(messages)

    assert once == messages
    assert normalize_messages(once) == once


def test_text_and_file_parts_become_one_string():
    content = [
        {"type": "text", "text": "What is in this report?"},
        {"type": "file", "url": "https://files.example/report.pdf"},
    ]

    text = normalize_content(content)

    assert text == "What is in this report?\nFile: https://files.example/report.pdf"


def test_serialized_parts_are_parsed():
    serialized = json.dumps([{"type": "text", "text": "hi"}, {"type": "file", "url": "u"}])

    assert normalize_content(serialized) == "hi\nFile: u"
    assert normalize_content(serialized.encode()) == "hi\nFile: u"


def test_flattened_text_is_stable():
    serialized = json.dumps([{"type": "text", "text": "hi"}, {"type": "file", "url": "u"}])

    once = normalize_messages([{"role": "user", "content": serialized}])

    assert normalize_messages(once) == once


def test_json_looking_text_is_left_alone():
    assert normalize_content("[1, 2, 3]") == "[1, 2, 3]"
    assert normalize_content('[{"name": "x"}]') == '[{"name": "x"}]'
    assert normalize_content('"hi"') == '"hi"'


def test_serialized_scalar_becomes_its_value():
    class Quoted:
        def __str__(self):
            return '"hi"'

    assert normalize_content(Quoted()) == "hi"


def test_unknown_parts_are_stringified():
    assert normalize_content([{"type": "image", "id": 1}, 42]) == "{'type': 'image', 'id': 1}\n42"


def test_file_part_without_url_uses_name():
    assert normalize_content({"type": "file", "name": "notes.txt"}) == "File: notes.txt"


def test_malformed_content_degrades_to_string():
    assert normalize_content(b"\xff\xfe not json") == "\ufffd\ufffd not json"
    assert normalize_content(None) == ""
    assert normalize_content(3.5) == "3.5"


def test_roles_order_and_input_are_preserved():
    parts = [{"type": "text", "text": "a"}]
    messages = [{"role": "user", "content": parts}, {"role": "assistant", "content": "b"}]

    result = normalize_messages(messages)

    assert [m["role"] for m in result] == ["user", "assistant"]
    assert result[0]["content"] == "a"
    assert messages[0]["content"] is parts
