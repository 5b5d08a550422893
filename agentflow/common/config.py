"""
Configuration Management for agentflow

Loads configuration from ~/.agentflow/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

logger = logging.getLogger("agentflow.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".agentflow"
CONFIG_PATH = CONFIG_DIR / "config.json"
DATABASE_PATH = CONFIG_DIR / "agentflow.db"
LEADS_PATH = CONFIG_DIR / "leads.json"

DEFAULT_FALLBACK_REPLY = "Sorry, I'm having trouble generating a response right now."
DEFAULT_LEAD_CONFIRMATION = "Thank you! I've saved your details and someone will follow up with you shortly."


@dataclass
class LLMConfig:
    """LLM provider configuration"""
    provider: str = "groq"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash-exp"
    groq_api_key: str = ""
    groq_model: str = "llama-3.3-70b-versatile"
    max_tokens: int = 512
    timeout: float = 30.0

    @property
    def api_key(self) -> str:
        """API key of the selected provider"""
        return getattr(self, f"{(self.provider or '').lower()}_api_key", "")

    @property
    def model(self) -> str:
        """Model of the selected provider"""
        return getattr(self, f"{(self.provider or '').lower()}_model", "")


@dataclass
class EmbeddingConfig:
    """Embedding model configuration"""
    mode: str = "femb"  # femb (fastembed, on-device), hf (inference API), disabled
    model: str = "sentence-transformers/all-MiniLM-L6-v2"
    dimension: int = 384
    hf_api_key: str = ""
    batch_size: int = 100


@dataclass
class RetrievalConfig:
    """Knowledge retrieval configuration"""
    strategy: str = "vector"  # keyword, vector, disabled
    topk: int = 3
    timeout: float = 5.0
    keyword_corpus_path: str = ""
    vector_index_path: str = ""


@dataclass
class StorageConfig:
    """Session / lead / agent persistence"""
    backend: str = "sqlite"  # memory or sqlite
    database_path: str = str(DATABASE_PATH)
    leads_path: str = ""  # optional JSON lead file (memory backend only)


@dataclass
class EngineConfig:
    """Workflow engine behaviour"""
    fallback_reply: str = DEFAULT_FALLBACK_REPLY
    lead_confirmation: str = DEFAULT_LEAD_CONFIRMATION
    generation_timeout: float = 30.0


@dataclass
class ServerConfig:
    """HTTP server configuration"""
    host: str = "0.0.0.0"
    port: int = 3000


@dataclass
class AgentFlowConfig:
    """Main agentflow configuration"""
    llm: LLMConfig = field(default_factory=LLMConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    defaults = LLMConfig()
    return LLMConfig(
        provider=llm_data.get("provider", defaults.provider),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", defaults.anthropic_model),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", defaults.openai_model),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", defaults.google_model),
        groq_api_key=llm_data.get("groq_api_key", ""),
        groq_model=llm_data.get("groq_model", defaults.groq_model),
        max_tokens=llm_data.get("max_tokens", defaults.max_tokens),
        timeout=llm_data.get("timeout", defaults.timeout),
    )


def _parse_embedding_config(data: dict) -> EmbeddingConfig:
    """Parse embedding section from config dict"""
    embedding_data = data.get("embedding", {})
    defaults = EmbeddingConfig()
    return EmbeddingConfig(
        mode=embedding_data.get("mode", defaults.mode),
        model=embedding_data.get("model", defaults.model),
        dimension=embedding_data.get("dimension", defaults.dimension),
        hf_api_key=embedding_data.get("hf_api_key", ""),
        batch_size=embedding_data.get("batch_size", defaults.batch_size),
    )


def _parse_retrieval_config(data: dict) -> RetrievalConfig:
    """Parse retrieval section from config dict"""
    retrieval_data = data.get("retrieval", {})
    defaults = RetrievalConfig()
    return RetrievalConfig(
        strategy=retrieval_data.get("strategy", defaults.strategy),
        topk=retrieval_data.get("topk", defaults.topk),
        timeout=retrieval_data.get("timeout", defaults.timeout),
        keyword_corpus_path=retrieval_data.get("keyword_corpus_path", ""),
        vector_index_path=retrieval_data.get("vector_index_path", ""),
    )


def _parse_storage_config(data: dict) -> StorageConfig:
    """Parse storage section from config dict"""
    storage_data = data.get("storage", {})
    defaults = StorageConfig()
    return StorageConfig(
        backend=storage_data.get("backend", defaults.backend),
        database_path=storage_data.get("database_path", defaults.database_path),
        leads_path=storage_data.get("leads_path", ""),
    )


def _parse_engine_config(data: dict) -> EngineConfig:
    """Parse engine section from config dict"""
    engine_data = data.get("engine", {})
    return EngineConfig(
        fallback_reply=engine_data.get("fallback_reply", DEFAULT_FALLBACK_REPLY),
        lead_confirmation=engine_data.get("lead_confirmation", DEFAULT_LEAD_CONFIRMATION),
        generation_timeout=engine_data.get("generation_timeout", 30.0),
    )


def _parse_server_config(data: dict) -> ServerConfig:
    """Parse server section from config dict"""
    server_data = data.get("server", {})
    return ServerConfig(
        host=server_data.get("host", "0.0.0.0"),
        port=server_data.get("port", 3000),
    )


def _is_truthy(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config() -> AgentFlowConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.agentflow/config.json)
    3. Default values
    """
    config = AgentFlowConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.llm = _parse_llm_config(data)
            config.embedding = _parse_embedding_config(data)
            config.retrieval = _parse_retrieval_config(data)
            config.storage = _parse_storage_config(data)
            config.engine = _parse_engine_config(data)
            config.server = _parse_server_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file: %s", e)

    # LLM env var overrides (track env-sourced keys so they are never saved)
    _env_llm_map = {
        "AGENTFLOW_LLM_PROVIDER": "provider",
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_MODEL": "google_model",
        "GROQ_API_KEY": "groq_api_key",
        "GROQ_MODEL": "groq_model",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    if os.getenv("HF_API_KEY"):
        config.embedding.hf_api_key = os.getenv("HF_API_KEY")
        config._env_sourced_keys.add("hf_api_key")
    if os.getenv("EMBEDDING_MODE"):
        config.embedding.mode = os.getenv("EMBEDDING_MODE")
    if os.getenv("EMBEDDING_MODEL"):
        config.embedding.model = os.getenv("EMBEDDING_MODEL")
    if os.getenv("DISABLE_EMBEDDINGS") and _is_truthy(os.getenv("DISABLE_EMBEDDINGS")):
        config.embedding.mode = "disabled"

    if os.getenv("AGENTFLOW_RETRIEVAL_STRATEGY"):
        config.retrieval.strategy = os.getenv("AGENTFLOW_RETRIEVAL_STRATEGY")
    if os.getenv("AGENTFLOW_RETRIEVAL_TOPK"):
        config.retrieval.topk = int(os.getenv("AGENTFLOW_RETRIEVAL_TOPK"))

    if os.getenv("AGENTFLOW_STORAGE_BACKEND"):
        config.storage.backend = os.getenv("AGENTFLOW_STORAGE_BACKEND")
    if os.getenv("AGENTFLOW_DATABASE_PATH"):
        config.storage.database_path = os.getenv("AGENTFLOW_DATABASE_PATH")

    if os.getenv("AGENTFLOW_PORT"):
        config.server.port = int(os.getenv("AGENTFLOW_PORT"))

    return config


def save_config(config: AgentFlowConfig) -> None:
    """Save configuration to file.

    API key fields that were sourced from environment variables are written
    as empty strings so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    llm_section = {
        "provider": config.llm.provider,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "anthropic_model": config.llm.anthropic_model,
        "openai_api_key": config.llm.openai_api_key,
        "openai_model": config.llm.openai_model,
        "google_api_key": config.llm.google_api_key,
        "google_model": config.llm.google_model,
        "groq_api_key": config.llm.groq_api_key,
        "groq_model": config.llm.groq_model,
        "max_tokens": config.llm.max_tokens,
        "timeout": config.llm.timeout,
    }
    for key in ("anthropic_api_key", "openai_api_key", "google_api_key", "groq_api_key"):
        if key in env_sourced:
            llm_section[key] = ""

    data = {
        "llm": llm_section,
        "embedding": {
            "mode": config.embedding.mode,
            "model": config.embedding.model,
            "dimension": config.embedding.dimension,
            "hf_api_key": "" if "hf_api_key" in env_sourced else config.embedding.hf_api_key,
            "batch_size": config.embedding.batch_size,
        },
        "retrieval": {
            "strategy": config.retrieval.strategy,
            "topk": config.retrieval.topk,
            "timeout": config.retrieval.timeout,
            "keyword_corpus_path": config.retrieval.keyword_corpus_path,
            "vector_index_path": config.retrieval.vector_index_path,
        },
        "storage": {
            "backend": config.storage.backend,
            "database_path": config.storage.database_path,
            "leads_path": config.storage.leads_path,
        },
        "engine": {
            "fallback_reply": config.engine.fallback_reply,
            "lead_confirmation": config.engine.lead_confirmation,
            "generation_timeout": config.engine.generation_timeout,
        },
        "server": {
            "host": config.server.host,
            "port": config.server.port,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)


def ensure_directories() -> None:
    """Ensure required directories exist"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
