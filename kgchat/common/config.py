"""
Configuration Management for kgchat

Loads configuration from ~/.kgchat/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

logger = logging.getLogger("kgchat.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".kgchat"
CONFIG_PATH = CONFIG_DIR / "config.json"
LOGS_DIR = CONFIG_DIR / "logs"

DEFAULT_OPENROUTER_MODEL = "anthropic/claude-sonnet-4"
DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-20250514"


@dataclass
class LLMConfig:
    """Model provider configuration"""
    provider: str = "openrouter"  # "openrouter" or "claude"
    openrouter_api_key: str = ""
    openrouter_model: str = DEFAULT_OPENROUTER_MODEL
    anthropic_api_key: str = ""
    anthropic_model: str = DEFAULT_ANTHROPIC_MODEL
    max_tokens: int = 4096
    timeout: float = 60.0


@dataclass
class RetrieverConfig:
    """Limits of the retrieval pipeline and context block"""
    fragment_pool: int = 30  # candidates scored per query
    term_universe: int = 100
    term_limit: int = 15  # lexical term fallback
    max_fragments: int = 10
    diversity_threshold: float = 0.7
    individual_limit: int = 30
    tier_limit: int = 15
    history_limit: int = 6


@dataclass
class PreferencesConfig:
    """Default classifier preferences (audience, difficulty, detailing)"""
    audience: str = "Developers"
    difficulty: str = "Intermediate"
    detailing: str = "Detailed"


@dataclass
class ServerConfig:
    """HTTP surface configuration"""
    host: str = "0.0.0.0"
    port: int = 8000


@dataclass
class KgChatConfig:
    """Main kgchat configuration"""
    llm: LLMConfig = field(default_factory=LLMConfig)
    retriever: RetrieverConfig = field(default_factory=RetrieverConfig)
    preferences: PreferencesConfig = field(default_factory=PreferencesConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    state: str = "active"
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    return LLMConfig(
        provider=llm_data.get("provider", "openrouter"),
        openrouter_api_key=llm_data.get("openrouter_api_key", ""),
        openrouter_model=llm_data.get("openrouter_model", DEFAULT_OPENROUTER_MODEL),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", DEFAULT_ANTHROPIC_MODEL),
        max_tokens=llm_data.get("max_tokens", 4096),
        timeout=llm_data.get("timeout", 60.0),
    )


def _parse_retriever_config(data: dict) -> RetrieverConfig:
    """Parse retriever section from config dict"""
    retriever_data = data.get("retriever", {})
    defaults = RetrieverConfig()
    return RetrieverConfig(
        fragment_pool=retriever_data.get("fragment_pool", defaults.fragment_pool),
        term_universe=retriever_data.get("term_universe", defaults.term_universe),
        term_limit=retriever_data.get("term_limit", defaults.term_limit),
        max_fragments=retriever_data.get("max_fragments", defaults.max_fragments),
        diversity_threshold=retriever_data.get("diversity_threshold", defaults.diversity_threshold),
        individual_limit=retriever_data.get("individual_limit", defaults.individual_limit),
        tier_limit=retriever_data.get("tier_limit", defaults.tier_limit),
        history_limit=retriever_data.get("history_limit", defaults.history_limit),
    )


def _parse_preferences_config(data: dict) -> PreferencesConfig:
    """Parse preferences section from config dict"""
    prefs_data = data.get("preferences", {})
    return PreferencesConfig(
        audience=prefs_data.get("audience", "Developers"),
        difficulty=prefs_data.get("difficulty", "Intermediate"),
        detailing=prefs_data.get("detailing", "Detailed"),
    )


def load_config() -> KgChatConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.kgchat/config.json)
    3. Default values
    """
    config = KgChatConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.llm = _parse_llm_config(data)
            config.retriever = _parse_retriever_config(data)
            config.preferences = _parse_preferences_config(data)
            server_data = data.get("server", {})
            config.server = ServerConfig(
                host=server_data.get("host", "0.0.0.0"),
                port=server_data.get("port", 8000),
            )
            config.state = data.get("state", "active")
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file: %s", e)

    # LLM env var overrides (track env-sourced keys)
    _env_llm_map = {
        "KGCHAT_LLM_PROVIDER": "provider",
        "OPENROUTER_API_KEY": "openrouter_api_key",
        "OPENROUTER_MODEL": "openrouter_model",
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    if os.getenv("KGCHAT_AUDIENCE"):
        config.preferences.audience = os.getenv("KGCHAT_AUDIENCE")
    if os.getenv("KGCHAT_DIFFICULTY"):
        config.preferences.difficulty = os.getenv("KGCHAT_DIFFICULTY")

    if os.getenv("KGCHAT_STATE"):
        config.state = os.getenv("KGCHAT_STATE")

    return config


def save_config(config: KgChatConfig) -> None:
    """Save configuration to file.

    API key fields that were sourced from environment variables are written
    as empty strings so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    llm_section = {
        "provider": config.llm.provider,
        "openrouter_api_key": config.llm.openrouter_api_key,
        "openrouter_model": config.llm.openrouter_model,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "anthropic_model": config.llm.anthropic_model,
        "max_tokens": config.llm.max_tokens,
        "timeout": config.llm.timeout,
    }
    for key in ("openrouter_api_key", "anthropic_api_key"):
        if key in env_sourced:
            llm_section[key] = ""

    r = config.retriever
    data = {
        "llm": llm_section,
        "retriever": {
            "fragment_pool": r.fragment_pool,
            "term_universe": r.term_universe,
            "term_limit": r.term_limit,
            "max_fragments": r.max_fragments,
            "diversity_threshold": r.diversity_threshold,
            "individual_limit": r.individual_limit,
            "tier_limit": r.tier_limit,
            "history_limit": r.history_limit,
        },
        "preferences": {
            "audience": config.preferences.audience,
            "difficulty": config.preferences.difficulty,
            "detailing": config.preferences.detailing,
        },
        "server": {"host": config.server.host, "port": config.server.port},
        "state": config.state,
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)


def ensure_directories() -> None:
    """Ensure required directories exist"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
