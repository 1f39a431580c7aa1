"""
Configuration module for PyMemoria.

Centralizes configuration management and environment variable handling.
Uses DuckDB for memory and summary storage and an OpenRouter-hosted model
for summary condensation.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


@dataclass
class DuckDBConfig:
    """DuckDB configuration for memory and summary storage."""
    path: str = field(
        default_factory=lambda: os.getenv(
            "DUCKDB_PATH",
            str(Path(__file__).parent / "database" / "memoria.duckdb")
        )
    )
    read_only: bool = field(
        default_factory=lambda: os.getenv("DUCKDB_READ_ONLY", "false").lower() == "true"
    )


@dataclass
class MirrorConfig:
    """Optional online memory mirror (a second DuckDB / MotherDuck database)."""
    path: Optional[str] = field(
        default_factory=lambda: os.getenv("MEMORY_MIRROR_PATH") or None
    )
    enabled: bool = field(
        default_factory=lambda: os.getenv("MEMORY_MIRROR_ENABLED", "true").lower() == "true"
    )


@dataclass
class LLMConfig:
    """LLM provider configuration."""
    api_key: str = field(default_factory=lambda: os.getenv("OPENROUTER_API_KEY", ""))
    base_url: str = field(default_factory=lambda: os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"))
    model_name: str = field(default_factory=lambda: os.getenv("MODEL_NAME", "openai/gpt-4o"))
    temperature: float = field(default_factory=lambda: float(os.getenv("LLM_TEMPERATURE", "0.7")))
    max_retries: int = field(default_factory=lambda: int(os.getenv("LLM_MAX_RETRIES", "3")))
    timeout_seconds: float = field(default_factory=lambda: float(os.getenv("LLM_TIMEOUT_SECONDS", "60")))


@dataclass
class LangfuseConfig:
    """Langfuse observability configuration."""
    public_key: str = field(default_factory=lambda: os.getenv("LANGFUSE_PUBLIC_KEY", ""))
    secret_key: str = field(default_factory=lambda: os.getenv("LANGFUSE_SECRET_KEY", ""))
    host: str = field(default_factory=lambda: os.getenv("LANGFUSE_HOST", "http://localhost:3000"))
    enabled: bool = field(default_factory=lambda: os.getenv("LANGFUSE_ENABLED", "false").lower() == "true")


@dataclass
class ScoringConfig:
    """
    Tunable parameters of the memory scoring engine.

    Attributes:
        decay_rate: Exponential decay rate per hour of memory age
        priority_threshold: Minimum priority score for a memory to be retained
        cleanup_interval_ms: Interval between scheduled cleanup runs
        adjustment_interval_hours: Minimum time between parameter adjustments
        min_decay_rate / max_decay_rate: Clamp bounds for decay_rate
        min_priority_threshold / max_priority_threshold: Clamp bounds for the threshold
    """
    decay_rate: float = field(
        default_factory=lambda: float(os.getenv("MEMORY_DECAY_RATE", "0.1"))
    )
    priority_threshold: float = field(
        default_factory=lambda: float(os.getenv("MEMORY_PRIORITY_THRESHOLD", "0.5"))
    )
    cleanup_interval_ms: int = field(
        default_factory=lambda: int(os.getenv("MEMORY_CLEANUP_INTERVAL_MS", str(24 * 60 * 60 * 1000)))
    )
    adjustment_interval_hours: float = 6.0
    min_decay_rate: float = 0.01
    max_decay_rate: float = 0.5
    min_priority_threshold: float = 0.3
    max_priority_threshold: float = 0.8


@dataclass
class AgentConfig:
    """Identity of the agent that owns the memories."""
    name: str = field(default_factory=lambda: os.getenv("AGENT_NAME", "noot"))


@dataclass
class MemoriaConfig:
    """Main configuration class for PyMemoria."""
    duckdb: DuckDBConfig = field(default_factory=DuckDBConfig)
    mirror: MirrorConfig = field(default_factory=MirrorConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)

    def ensure_directories(self) -> None:
        """Ensure database directories exist."""
        if self.duckdb.path != ":memory:":
            Path(self.duckdb.path).parent.mkdir(parents=True, exist_ok=True)


# Global configuration instance
config = MemoriaConfig()


def get_config() -> MemoriaConfig:
    """Get the global configuration instance."""
    return config


def reload_config() -> MemoriaConfig:
    """Reload configuration from environment variables."""
    global config
    load_dotenv(override=True)
    config = MemoriaConfig()
    return config
