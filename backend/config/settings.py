"""Central configuration using Pydantic BaseSettings."""

import logging
from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "flux-orchestrator"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # LLM - Ollama (default)
    default_llm_provider: Literal["ollama"] = "ollama"
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "qwen2.5:7b"
    llm_temperature: float = 0.2
    llm_max_tokens: int = 1024
    llm_timeout_seconds: float = 120.0

    # Agent handle (retry / health / fallback)
    agent_default_engine: Literal["langchain", "custom", "simple"] = "langchain"
    agent_retry_attempts: int = 3
    agent_chat_retry_attempts: int = 2
    agent_retry_backoff_ms: int = 1000  # linear: attempt * backoff
    agent_health_check_interval_seconds: float = 300.0  # 0 disables the probe task
    agent_auto_fallback: bool = True

    # Orchestrator
    orchestrator_enable_fallback: bool = True
    orchestrator_enable_collaboration: bool = True
    orchestrator_routing_strategy: Literal["capability", "performance", "hybrid"] = "hybrid"
    orchestrator_weight_success: float = 0.4
    orchestrator_weight_latency: float = 0.3
    orchestrator_weight_load: float = 0.3
    orchestrator_fallback_agent: str = "conversational"
    orchestrator_history_max: int = 1000
    orchestrator_history_keep: int = 500
    orchestrator_max_concurrent_agents: int = 5

    # Paths
    base_dir: Path = Path(__file__).resolve().parent.parent

    @field_validator(
        "orchestrator_weight_success",
        "orchestrator_weight_latency",
        "orchestrator_weight_load",
    )
    @classmethod
    def check_weight_range(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"performance weight must be within [0, 1], got {v}")
        return v

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Apply a basic logging setup for entry points (scripts, servers)."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
