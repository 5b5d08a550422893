"""Tests for shared LLM response parsing utilities."""

import pytest
from agentflow.common.llm_utils import parse_llm_json


class TestParseLlmJson:
    def test_valid_json(self):
        assert parse_llm_json('{"key": "value"}') == {"key": "value"}

    def test_json_with_markdown_fences(self):
        raw = '```json\n{"function_call": {"name": "saveLeadData"}}\n```'
        assert parse_llm_json(raw) == {"function_call": {"name": "saveLeadData"}}

    def test_json_embedded_in_text(self):
        raw = 'Sure, calling it now: {"key": "value"} done.'
        assert parse_llm_json(raw) == {"key": "value"}

    def test_no_json_returns_empty_dict(self):
        assert parse_llm_json("Hello! How can I help you today?") == {}

    def test_empty_string_returns_empty_dict(self):
        assert parse_llm_json("") == {}

    def test_non_object_json_returns_empty_dict(self):
        assert parse_llm_json("[1, 2, 3]") == {}

    def test_invalid_json_with_braces_returns_empty(self):
        assert parse_llm_json('{"broken: json') == {}

    def test_fenced_json_after_preamble(self):
        raw = 'Here you go:\n```json\n{"reply": "hi"}\n```'
        assert parse_llm_json(raw) == {"reply": "hi"}
