import pytest

from research_agent.config import DEFAULT_SOURCE_URI, ChunkingConfig, load_settings
from research_agent.errors import InvalidConfig


def test_defaults_without_environment() -> None:
    settings = load_settings({})

    assert settings.sources == [DEFAULT_SOURCE_URI]
    assert settings.session_key == "OperativeT"
    assert settings.chunking == ChunkingConfig(chunk_size=1000, overlap=200)
    assert settings.agent.max_iterations == 15
    assert settings.openai_api_key is None
    assert settings.tavily_api_key is None


def test_environment_overrides() -> None:
    settings = load_settings(
        {
            "OPENAI_API_KEY": "sk-test",
            "TAVILY_API_KEY": "tvly-test",
            "RESEARCH_AGENT_SOURCES": "https://a.example, ,docs/guide.md",
            "RESEARCH_AGENT_SESSION_KEY": "demo",
            "RESEARCH_AGENT_CHUNK_SIZE": "300",
            "RESEARCH_AGENT_CHUNK_OVERLAP": "50",
            "RESEARCH_AGENT_MAX_ITERATIONS": "4",
        }
    )

    assert settings.openai_api_key == "sk-test"
    assert settings.sources == ["https://a.example", "docs/guide.md"]
    assert settings.session_key == "demo"
    assert settings.chunking.chunk_size == 300
    assert settings.agent.max_iterations == 4


@pytest.mark.parametrize(
    "environ",
    [
        {"RESEARCH_AGENT_CHUNK_SIZE": "100", "RESEARCH_AGENT_CHUNK_OVERLAP": "100"},
        {"RESEARCH_AGENT_MAX_ITERATIONS": "zero"},
    ],
)
def test_bad_values_raise_invalid_config(environ: dict[str, str]) -> None:
    with pytest.raises(InvalidConfig):
        load_settings(environ)
