from __future__ import annotations

from typhon_relay.services.reply_extraction import DEFAULT_EXTRACTORS, extract_reply, top_level_text


def test_chat_choices_shape():
    assert extract_reply({"choices": [{"message": {"content": "hi"}}]}) == "hi"


def test_output_text_shape():
    assert extract_reply({"output_text": "hi"}) == "hi"


def test_text_shape():
    assert extract_reply({"text": "hi"}) == "hi"


def test_unknown_shape_is_empty():
    assert extract_reply({}) == ""
    assert extract_reply(None) == ""
    assert extract_reply("plain body") == ""


def test_choices_take_precedence_over_output_text():
    response = {"choices": [{"message": {"content": "from choices"}}], "output_text": "ignored"}
    assert extract_reply(response) == "from choices"


def test_malformed_choices_fall_through():
    assert extract_reply({"choices": [], "output_text": "fallback"}) == "fallback"
    assert extract_reply({"choices": [{"message": {"content": 42}}], "text": "fallback"}) == "fallback"
    assert extract_reply({"choices": "nope", "text": "fallback"}) == "fallback"


def test_extractors_can_be_appended():
    extractors = (*DEFAULT_EXTRACTORS, top_level_text("generated_text"))
    assert extract_reply({"generated_text": "hf"}, extractors) == "hf"
    assert extract_reply({"text": "first", "generated_text": "hf"}, extractors) == "first"
