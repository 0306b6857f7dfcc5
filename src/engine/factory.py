"""
Engine construction from an explicit settings value.

:func:`create_analysis_engine` is the only place an engine variant is
chosen.  It fails immediately on a missing credential or an invalid
override instead of deferring the problem to the first backend call.

:func:`settings_from_env` is an optional adapter for deployments that
configure the engine through environment variables; nothing else in the
package reads the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Mapping

from .config import (
    BACKEND_CONFIG,
    DEFAULT_ENGINE_TYPE,
    ENGINE_TYPE_ENV,
    ENGINE_TYPES,
    GROQ_MODEL_ENV,
    MAX_ATTEMPTS,
    PLANNED_ENGINE_TYPES,
    USE_MOCK_ENV,
)
from .engines import AnalysisEngine, GeminiEngine, GroqEngine, MockEngine
from .errors import ConfigurationError
from .records import EngineConfig

ENGINE_CLASSES: dict[str, type[AnalysisEngine]] = {
    "mock": MockEngine,
    "gemini": GeminiEngine,
    "groq": GroqEngine,
}


@dataclass(frozen=True)
class EngineSettings:
    """
    Everything needed to build an engine.

    Attributes:
        engine_type: ``'mock'``, ``'gemini'`` or ``'groq'``.
        api_key: Credential; required for remote engines.
        model_id: Optional model override for remote engines.
        engine_config: Overrides for ``batch_size`` / ``max_comments`` /
            ``timeout_ms`` applied on top of the engine's defaults.
        max_attempts: Attempts per request for transient failures.
    """

    engine_type: str = DEFAULT_ENGINE_TYPE
    api_key: str | None = None
    model_id: str | None = None
    engine_config: Mapping[str, int] | None = None
    max_attempts: int = MAX_ATTEMPTS


def resolve_engine_config(engine_type: str, overrides: Mapping[str, int] | None) -> EngineConfig:
    """
    Merge ``overrides`` into the engine type's default config.

    Raises:
        ConfigurationError: Unknown field or invalid value.
    """
    config = ENGINE_CLASSES[engine_type].default_config()
    if not overrides:
        return config
    known = {f.name for f in fields(EngineConfig)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ConfigurationError(f"Unknown engine config field(s): {unknown}")
    return replace(config, **{k: v for k, v in overrides.items() if v is not None})


def create_analysis_engine(settings: EngineSettings | None = None) -> AnalysisEngine:
    """
    Build the engine described by ``settings``.

    Args:
        settings: Engine selection and credentials; defaults to the mock
            engine with default limits.

    Returns:
        A ready-to-use engine.

    Raises:
        ConfigurationError: Unknown or unimplemented engine type, missing
            API key for a remote engine, or invalid config overrides.
    """
    settings = settings or EngineSettings()
    engine_type = (settings.engine_type or "").lower()

    if engine_type in PLANNED_ENGINE_TYPES:
        raise ConfigurationError(
            f"Engine type '{engine_type}' is not implemented yet. "
            f"Use one of {ENGINE_TYPES}."
        )
    if engine_type not in ENGINE_CLASSES:
        raise ConfigurationError(f"Unknown engine type '{settings.engine_type}'.")

    config = resolve_engine_config(engine_type, settings.engine_config)

    if engine_type == "mock":
        return MockEngine(config)

    if not settings.api_key:
        env_var = BACKEND_CONFIG[engine_type]["api_key_env"]
        raise ConfigurationError(
            f"An API key is required for the '{engine_type}' engine "
            f"(usually provided via {env_var})."
        )

    if settings.max_attempts < 1:
        raise ConfigurationError(f"max_attempts must be at least 1, got {settings.max_attempts}")

    engine_class = ENGINE_CLASSES[engine_type]
    return engine_class(
        settings.api_key,
        config=config,
        model_id=settings.model_id,
        max_attempts=settings.max_attempts,
    )


def settings_from_env(environ: Mapping[str, str] | None = None) -> EngineSettings:
    """
    Read engine settings from environment variables.

    ``USE_MOCK_ENGINE=true`` wins; otherwise ``LLM_ENGINE`` selects the
    engine, defaulting to mock.  Keys come from the backend's
    ``api_key_env``; ``GROQ_MODEL`` overrides the Groq model.

    Args:
        environ: Mapping to read instead of ``os.environ``.
    """
    environ = os.environ if environ is None else environ

    if environ.get(USE_MOCK_ENV, "").lower() == "true":
        return EngineSettings(engine_type="mock")

    engine_type = environ.get(ENGINE_TYPE_ENV, "").strip().lower() or DEFAULT_ENGINE_TYPE
    if engine_type not in BACKEND_CONFIG:
        return EngineSettings(engine_type=engine_type)

    model_id = None
    if engine_type == "groq":
        model_id = environ.get(GROQ_MODEL_ENV) or None
    return EngineSettings(
        engine_type=engine_type,
        api_key=environ.get(BACKEND_CONFIG[engine_type]["api_key_env"]) or None,
        model_id=model_id,
    )
