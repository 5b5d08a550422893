"""Tests for LLMClient provider abstraction."""

import pytest
from unittest.mock import MagicMock, patch

from agentflow.common.llm_client import LLMClient, GROQ_BASE_URL


class TestLLMClientInit:
    def test_missing_groq_key_logs_info(self, caplog):
        import logging
        with caplog.at_level(logging.INFO, logger="agentflow.common.llm_client"):
            client = LLMClient(provider="groq")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_missing_anthropic_key_logs_info(self, caplog):
        import logging
        with caplog.at_level(logging.INFO, logger="agentflow.common.llm_client"):
            client = LLMClient(provider="anthropic")
        assert not client.is_available
        assert "API key not provided" in caplog.text

    def test_unsupported_provider_logs_warning(self, caplog):
        import logging
        with caplog.at_level(logging.WARNING, logger="agentflow.common.llm_client"):
            client = LLMClient(provider="unsupported_xyz", api_key="key")
        assert not client.is_available
        assert "Unsupported" in caplog.text

    def test_groq_uses_openai_compatible_endpoint(self):
        with patch("openai.OpenAI") as mock_openai:
            client = LLMClient(provider="groq", model="llama-3.3-70b-versatile", api_key="gsk-test")
        assert client.is_available
        mock_openai.assert_called_once_with(api_key="gsk-test", base_url=GROQ_BASE_URL)

    def test_from_config(self):
        from agentflow.common.config import LLMConfig
        cfg = LLMConfig(provider="openai", openai_api_key="sk-test", openai_model="gpt-4o")
        with patch("openai.OpenAI"):
            client = LLMClient.from_config(cfg)
        assert client.provider == "openai"
        assert client.model == "gpt-4o"
        assert client.is_available


class TestLLMClientGenerate:
    def test_generate_raises_when_unavailable(self):
        client = LLMClient(provider="groq")
        with pytest.raises(RuntimeError, match="not available"):
            client.generate("test")

    def test_openai_compatible_generate(self):
        with patch("openai.OpenAI") as mock_openai:
            client = LLMClient(provider="groq", model="llama-3.3-70b-versatile", api_key="gsk-test")

        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = "  Hello there!  "
        mock_openai.return_value.chat.completions.create.return_value = response

        text = client.generate("hi", system="Be brief.", max_tokens=64, timeout=5.0)

        assert text == "Hello there!"
        kwargs = mock_openai.return_value.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "llama-3.3-70b-versatile"
        assert kwargs["max_tokens"] == 64
        assert kwargs["messages"][0] == {"role": "system", "content": "Be brief."}
        assert kwargs["messages"][1] == {"role": "user", "content": "hi"}

    def test_empty_choices_returns_empty_string(self):
        with patch("openai.OpenAI") as mock_openai:
            client = LLMClient(provider="openai", model="gpt-4o-mini", api_key="sk-test")
        mock_openai.return_value.chat.completions.create.return_value = MagicMock(choices=[])

        assert client.generate("hi") == ""

    def test_anthropic_joins_text_blocks(self):
        with patch("anthropic.Anthropic") as mock_anthropic:
            client = LLMClient(provider="anthropic", model="claude-sonnet-4-20250514", api_key="sk-ant")

        response = MagicMock()
        response.content = [
            MagicMock(type="text", text="Hello "),
            MagicMock(type="tool_use", text="ignored"),
            MagicMock(type="text", text="there "),
        ]
        mock_anthropic.return_value.messages.create.return_value = response

        assert client.generate("hi", system="Be brief.") == "Hello there"
        kwargs = mock_anthropic.return_value.messages.create.call_args.kwargs
        assert kwargs["system"] == "Be brief."
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]
