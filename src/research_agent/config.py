"""Configuration models for the research agent."""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

from research_agent.errors import InvalidConfig

DEFAULT_SOURCE_URI = "https://docs.smith.langchain.com/user_guide"

_SYSTEM_PROMPT = """
You are a helpful research assistant.

Rules:
1) For questions about the indexed documentation, call `{retrieval_tool}` first.
2) For current events or anything outside the indexed documents, call `{search_tool}`.
3) Ground factual statements in tool observations and mention their sources.
4) If a tool reports an error, either retry with a different query or answer
   without it and say what could not be verified.
""".strip()


class ChunkingConfig(BaseModel):
    """Configures the recursive character splitter."""

    chunk_size: int = Field(default=1000, ge=1)
    overlap: int = Field(default=200, ge=0)

    @model_validator(mode="after")
    def _check_overlap(self) -> "ChunkingConfig":
        if self.overlap >= self.chunk_size:
            raise ValueError("overlap must be less than chunk_size")
        return self

    @classmethod
    def create(cls, chunk_size: int, overlap: int) -> "ChunkingConfig":
        """Build a config, reporting bad parameters as `InvalidConfig`."""
        try:
            return cls(chunk_size=chunk_size, overlap=overlap)
        except ValidationError as exc:
            raise InvalidConfig(str(exc)) from exc


class RetrievalConfig(BaseModel):
    """Configures the document retrieval tool."""

    top_k: int = Field(default=4, ge=1)
    tool_name: str = Field(default="document_search", min_length=1)
    tool_description: str = (
        "Search for information about LangSmith. For any questions about "
        "LangSmith, you must use this tool!"
    )


class SearchConfig(BaseModel):
    """Configures the web search tool and provider."""

    tool_name: str = Field(default="web_search", min_length=1)
    tool_description: str = (
        "A search engine for current events and general knowledge. "
        "Input should be a search query."
    )
    max_results: int = Field(default=5, ge=1, le=20)
    timeout_seconds: float = Field(default=15.0, gt=0.0)
    api_url: str = "https://api.tavily.com/search"


class AgentConfig(BaseModel):
    """Configures agent loop execution."""

    max_iterations: int = Field(default=15, ge=1)
    turn_timeout_seconds: float = Field(default=120.0, gt=0.0)
    persist_tool_messages: bool = False
    system_prompt: str = _SYSTEM_PROMPT


class Settings(BaseModel):
    """Process-wide settings assembled from the environment."""

    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)

    openai_api_key: str | None = None
    openai_model: str = "gpt-4o"
    openai_embedding_model: str = "text-embedding-3-small"
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    tavily_api_key: str | None = None
    sources: list[str] = Field(default_factory=lambda: [DEFAULT_SOURCE_URI])
    session_key: str = "OperativeT"
    log_level: str = "INFO"

    def system_prompt(self) -> str:
        return self.agent.system_prompt.format(
            retrieval_tool=self.retrieval.tool_name,
            search_tool=self.search.tool_name,
        )


def load_settings(environ: dict[str, str] | None = None) -> Settings:
    """Read settings from `.env` and the process environment."""

    if environ is None:
        load_dotenv()
        environ = dict(os.environ)

    raw_sources = environ.get("RESEARCH_AGENT_SOURCES")
    sources = (
        [uri.strip() for uri in raw_sources.split(",") if uri.strip()]
        if raw_sources is not None
        else [DEFAULT_SOURCE_URI]
    )
    try:
        return Settings(
            chunking=ChunkingConfig(
                chunk_size=int(environ.get("RESEARCH_AGENT_CHUNK_SIZE", 1000)),
                overlap=int(environ.get("RESEARCH_AGENT_CHUNK_OVERLAP", 200)),
            ),
            agent=AgentConfig(
                max_iterations=int(environ.get("RESEARCH_AGENT_MAX_ITERATIONS", 15)),
            ),
            openai_api_key=environ.get("OPENAI_API_KEY") or None,
            openai_model=environ.get("OPENAI_MODEL", "gpt-4o"),
            openai_embedding_model=environ.get(
                "OPENAI_EMBEDDING_MODEL", "text-embedding-3-small"
            ),
            tavily_api_key=environ.get("TAVILY_API_KEY") or None,
            sources=sources,
            session_key=environ.get("RESEARCH_AGENT_SESSION_KEY", "OperativeT"),
            log_level=environ.get("LOG_LEVEL", "INFO"),
        )
    except (ValidationError, ValueError) as exc:
        raise InvalidConfig(str(exc)) from exc
