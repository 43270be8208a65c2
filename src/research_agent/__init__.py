"""Research agent package."""

from .config import AgentConfig, ChunkingConfig, RetrievalConfig, SearchConfig, Settings

__all__ = ["AgentConfig", "ChunkingConfig", "RetrievalConfig", "SearchConfig", "Settings"]
