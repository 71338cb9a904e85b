import pytest

from journey_assistant.config import DEFAULT_DB_PATH, AssistantConfig, read_env_file


def test_defaults_from_empty_environment():
    config = AssistantConfig.from_env({})

    assert config.provider == "openai"
    assert config.resolved_model == "gpt-4o"
    assert config.api_keys == {}
    assert config.timeout == 60.0
    assert config.db_path == DEFAULT_DB_PATH
    assert config.enhance_results is True
    assert config.max_tokens == 10000
    assert config.temperature == 0.1


def test_environment_overrides():
    config = AssistantConfig.from_env(
        {
            "JOURNEY_ASSISTANT_PROVIDER": "Gemini",
            "JOURNEY_ASSISTANT_TIMEOUT": "12.5",
            "JOURNEY_ASSISTANT_DB": "/tmp/journey.db",
            "JOURNEY_ASSISTANT_ENHANCE": "off",
            "VITE_GEMINI_API_KEY": "g-vite",
            "OPENAI_API_KEY": " sk-plain ",
            "VITE_OPENAI_API_KEY": "sk-vite",
        }
    )

    assert config.provider == "gemini"
    assert config.resolved_model == "gemini-1.5-flash"
    assert config.api_key() == "g-vite"
    assert config.api_key("openai") == "sk-plain"
    assert config.timeout == 12.5
    assert config.db_path == "/tmp/journey.db"
    assert config.enhance_results is False


def test_invalid_values_are_rejected():
    with pytest.raises(ValueError):
        AssistantConfig.from_env({"JOURNEY_ASSISTANT_PROVIDER": "claude"})
    with pytest.raises(ValueError):
        AssistantConfig.from_env({"JOURNEY_ASSISTANT_TIMEOUT": "soon"})
    with pytest.raises(ValueError):
        AssistantConfig(timeout=0)


def test_env_file_parsing(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "# keys\n"
        "OPENAI_API_KEY=sk-file\n"
        "export JOURNEY_ASSISTANT_MODEL='gpt-4o-mini'\n"
        "\n"
        "EMPTY_KEY\n"
        'JOURNEY_ASSISTANT_TIMEOUT="30"\n',
        encoding="utf-8",
    )

    assert read_env_file(env_file) == {
        "OPENAI_API_KEY": "sk-file",
        "JOURNEY_ASSISTANT_MODEL": "gpt-4o-mini",
        "JOURNEY_ASSISTANT_TIMEOUT": "30",
    }
    config = AssistantConfig.from_env_file(env_file, environ={"JOURNEY_ASSISTANT_TIMEOUT": "5"})
    assert config.api_key() == "sk-file"
    assert config.resolved_model == "gpt-4o-mini"
    assert config.timeout == 5.0


def test_missing_env_file_is_an_error(tmp_path):
    with pytest.raises(FileNotFoundError):
        AssistantConfig.from_env_file(tmp_path / "absent.env", environ={})
