"""
Unit tests for src/engine/factory.py.

Covers:
- create_analysis_engine: default mock, remote engines, config overrides,
  and every construction-time ConfigurationError.
- settings_from_env: mock override, engine selection, key and model lookup.
"""

from __future__ import annotations

import pytest

from src.engine.engines import GeminiEngine, GroqEngine, MockEngine
from src.engine.errors import ConfigurationError
from src.engine.factory import EngineSettings, create_analysis_engine, settings_from_env


# ---------------------------------------------------------------------------
# Class: create_analysis_engine
# ---------------------------------------------------------------------------

class TestCreateAnalysisEngine:

    def test_default_is_mock(self):
        engine = create_analysis_engine()
        assert isinstance(engine, MockEngine)
        assert engine.get_config().batch_size == 50

    def test_engine_type_is_case_insensitive(self):
        assert isinstance(create_analysis_engine(EngineSettings(engine_type="MOCK")), MockEngine)

    @pytest.mark.parametrize("engine_type, engine_class", [("gemini", GeminiEngine), ("groq", GroqEngine)])
    def test_remote_engines(self, engine_type, engine_class):
        engine = create_analysis_engine(EngineSettings(engine_type=engine_type, api_key="k"))
        assert isinstance(engine, engine_class)
        assert engine.get_config().batch_size == 20

    def test_overrides_are_merged_with_defaults(self):
        settings = EngineSettings(engine_type="groq", api_key="k", engine_config={"batch_size": 5})
        config = create_analysis_engine(settings).get_config()
        assert config.batch_size == 5
        assert config.timeout_ms == 30000

    def test_model_and_attempts_are_passed_through(self):
        settings = EngineSettings(engine_type="groq", api_key="k", model_id="m-1", max_attempts=1)
        engine = create_analysis_engine(settings)
        assert engine.model_id == "m-1"
        assert engine.max_attempts == 1

    def test_missing_key_names_the_env_var(self):
        with pytest.raises(ConfigurationError, match="GEMINI_API_KEY"):
            create_analysis_engine(EngineSettings(engine_type="gemini"))

    def test_planned_engine_is_rejected(self):
        with pytest.raises(ConfigurationError, match="not implemented"):
            create_analysis_engine(EngineSettings(engine_type="openai", api_key="k"))

    def test_unknown_engine_is_rejected(self):
        with pytest.raises(ConfigurationError, match="Unknown engine type"):
            create_analysis_engine(EngineSettings(engine_type="claude"))

    @pytest.mark.parametrize("overrides", [{"batch_size": 0}, {"timeout_ms": -5}, {"workers": 3}])
    def test_invalid_overrides_are_rejected(self, overrides):
        with pytest.raises(ConfigurationError):
            create_analysis_engine(EngineSettings(engine_config=overrides))

    def test_max_attempts_must_be_positive(self):
        with pytest.raises(ConfigurationError, match="max_attempts"):
            create_analysis_engine(EngineSettings(engine_type="groq", api_key="k", max_attempts=0))

    def test_error_code(self):
        with pytest.raises(ConfigurationError) as exc_info:
            create_analysis_engine(EngineSettings(engine_type="claude"))
        assert exc_info.value.code == "CONFIGURATION_ERROR"


# ---------------------------------------------------------------------------
# Class: settings_from_env
# ---------------------------------------------------------------------------

class TestSettingsFromEnv:

    def test_empty_environment_selects_mock(self):
        assert settings_from_env({}) == EngineSettings(engine_type="mock")

    def test_mock_override_wins(self):
        env = {"USE_MOCK_ENGINE": "TRUE", "LLM_ENGINE": "groq", "GROQ_API_KEY": "k"}
        assert settings_from_env(env).engine_type == "mock"

    def test_groq_with_key_and_model(self):
        env = {"LLM_ENGINE": " Groq ", "GROQ_API_KEY": "gk", "GROQ_MODEL": "llama-x"}
        settings = settings_from_env(env)
        assert settings == EngineSettings(engine_type="groq", api_key="gk", model_id="llama-x")

    def test_groq_model_ignored_for_gemini(self):
        env = {"LLM_ENGINE": "gemini", "GEMINI_API_KEY": "mk", "GROQ_MODEL": "llama-x"}
        settings = settings_from_env(env)
        assert settings.api_key == "mk"
        assert settings.model_id is None

    def test_missing_key_surfaces_at_construction(self):
        settings = settings_from_env({"LLM_ENGINE": "groq"})
        assert settings.api_key is None
        with pytest.raises(ConfigurationError):
            create_analysis_engine(settings)

    def test_unknown_engine_passes_through_to_factory(self):
        settings = settings_from_env({"LLM_ENGINE": "openai"})
        assert settings.engine_type == "openai"
        with pytest.raises(ConfigurationError, match="not implemented"):
            create_analysis_engine(settings)

    def test_reads_os_environ_by_default(self, monkeypatch):
        monkeypatch.setenv("USE_MOCK_ENGINE", "true")
        assert settings_from_env().engine_type == "mock"
