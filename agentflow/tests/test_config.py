"""Tests for configuration loading and saving."""

import json
import os
import pytest
from unittest.mock import patch


CONFIG_ENV_VARS = [
    "AGENTFLOW_LLM_PROVIDER", "GROQ_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY",
    "DISABLE_EMBEDDINGS", "EMBEDDING_MODE", "AGENTFLOW_RETRIEVAL_STRATEGY",
    "AGENTFLOW_RETRIEVAL_TOPK", "AGENTFLOW_STORAGE_BACKEND", "AGENTFLOW_PORT",
]


@pytest.fixture
def clean_env():
    env = {k: v for k, v in os.environ.items() if k not in CONFIG_ENV_VARS}
    with patch.dict(os.environ, env, clear=True):
        yield


class TestDefaults:
    def test_llm_config_defaults(self):
        from agentflow.common.config import LLMConfig
        cfg = LLMConfig()
        assert cfg.provider == "groq"
        assert cfg.model == "llama-3.3-70b-versatile"
        assert cfg.api_key == ""

    def test_api_key_follows_provider(self):
        from agentflow.common.config import LLMConfig
        cfg = LLMConfig(provider="openai", openai_api_key="sk-test", groq_api_key="gsk-test")
        assert cfg.api_key == "sk-test"
        assert cfg.model == "gpt-4o-mini"

    def test_retrieval_and_server_defaults(self):
        from agentflow.common.config import AgentFlowConfig
        cfg = AgentFlowConfig()
        assert cfg.retrieval.topk == 3
        assert cfg.embedding.dimension == 384
        assert cfg.embedding.batch_size == 100
        assert cfg.server.port == 3000
        assert cfg.engine.fallback_reply == "Sorry, I'm having trouble generating a response right now."


class TestLoadConfig:
    def test_missing_file_uses_defaults(self, tmp_path, clean_env):
        from agentflow.common.config import load_config
        with patch("agentflow.common.config.CONFIG_PATH", tmp_path / "missing.json"):
            cfg = load_config()
        assert cfg.llm.provider == "groq"
        assert cfg.storage.backend == "sqlite"

    def test_load_sections_from_file(self, tmp_path, clean_env):
        from agentflow.common.config import load_config
        config_data = {
            "llm": {"provider": "openai", "openai_api_key": "sk-file"},
            "retrieval": {"strategy": "keyword", "topk": 5},
            "storage": {"backend": "memory"},
            "engine": {"fallback_reply": "One moment please."},
        }
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps(config_data))

        with patch("agentflow.common.config.CONFIG_PATH", config_file):
            cfg = load_config()

        assert cfg.llm.provider == "openai"
        assert cfg.llm.api_key == "sk-file"
        assert cfg.retrieval.strategy == "keyword"
        assert cfg.retrieval.topk == 5
        assert cfg.storage.backend == "memory"
        assert cfg.engine.fallback_reply == "One moment please."
        assert cfg.engine.lead_confirmation.startswith("Thank you")

    def test_malformed_file_falls_back_to_defaults(self, tmp_path, clean_env, caplog):
        import logging
        from agentflow.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json")

        with patch("agentflow.common.config.CONFIG_PATH", config_file), \
             caplog.at_level(logging.WARNING, logger="agentflow.common.config"):
            cfg = load_config()

        assert cfg.llm.provider == "groq"
        assert "Failed to load config file" in caplog.text

    def test_env_var_overrides(self, tmp_path, clean_env):
        from agentflow.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"retrieval": {"strategy": "vector"}}))

        env = {
            "GROQ_API_KEY": "gsk-env",
            "AGENTFLOW_RETRIEVAL_STRATEGY": "keyword",
            "AGENTFLOW_RETRIEVAL_TOPK": "7",
            "AGENTFLOW_PORT": "8080",
        }
        with patch("agentflow.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, env, clear=False):
            cfg = load_config()

        assert cfg.llm.api_key == "gsk-env"
        assert cfg.retrieval.strategy == "keyword"
        assert cfg.retrieval.topk == 7
        assert cfg.server.port == 8080

    @pytest.mark.parametrize("value,expected", [
        ("1", "disabled"),
        ("true", "disabled"),
        ("0", "femb"),
        ("false", "femb"),
    ])
    def test_disable_embeddings_flag(self, tmp_path, clean_env, value, expected):
        from agentflow.common.config import load_config
        with patch("agentflow.common.config.CONFIG_PATH", tmp_path / "missing.json"), \
             patch.dict(os.environ, {"DISABLE_EMBEDDINGS": value}, clear=False):
            cfg = load_config()
        assert cfg.embedding.mode == expected

    def test_mixed_case_provider_from_env(self, tmp_path, clean_env):
        from agentflow.common.config import load_config
        from agentflow.common.llm_client import LLMClient
        env = {"AGENTFLOW_LLM_PROVIDER": "Groq", "GROQ_API_KEY": "gsk-env"}
        with patch("agentflow.common.config.CONFIG_PATH", tmp_path / "missing.json"), \
             patch.dict(os.environ, env, clear=False):
            cfg = load_config()

        assert cfg.llm.api_key == "gsk-env"
        assert cfg.llm.model == "llama-3.3-70b-versatile"
        with patch("openai.OpenAI"):
            assert LLMClient.from_config(cfg.llm).is_available


class TestSaveConfig:
    def test_save_config_omits_env_keys(self, tmp_path, clean_env):
        from agentflow.common.config import load_config, save_config
        config_file = tmp_path / "config.json"
        config_file.write_text("{}")

        with patch("agentflow.common.config.CONFIG_PATH", config_file), \
             patch("agentflow.common.config.CONFIG_DIR", tmp_path), \
             patch.dict(os.environ, {"GROQ_API_KEY": "gsk-from-env"}, clear=False):
            cfg = load_config()
            save_config(cfg)

        saved = json.loads(config_file.read_text())
        assert saved["llm"]["groq_api_key"] == ""

    def test_save_then_load_round_trip(self, tmp_path, clean_env):
        from agentflow.common.config import load_config, save_config
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({
            "llm": {"provider": "anthropic", "anthropic_api_key": "sk-ant"},
            "retrieval": {"strategy": "disabled"},
            "engine": {"generation_timeout": 12.5},
        }))

        with patch("agentflow.common.config.CONFIG_PATH", config_file), \
             patch("agentflow.common.config.CONFIG_DIR", tmp_path):
            save_config(load_config())
            cfg = load_config()

        assert cfg.llm.provider == "anthropic"
        assert cfg.llm.anthropic_api_key == "sk-ant"
        assert cfg.retrieval.strategy == "disabled"
        assert cfg.engine.generation_timeout == 12.5
