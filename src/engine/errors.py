"""
Typed errors raised by the analysis engine.

Decode and configuration failures propagate to the caller; quota limits
and missing batch items are absorbed by the engines and never raised.
"""

from __future__ import annotations


class AnalysisError(Exception):
    """
    Base error carrying a stable machine-readable code.

    Args:
        message: Human-readable description.
        code: Stable identifier such as ``'DECODE_FAILURE'``.
        cause: Original exception, if any.
        engine: Name of the engine that raised, if known.
    """

    code = "ANALYSIS_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        cause: BaseException | None = None,
        engine: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.cause = cause
        self.engine = engine

    def __str__(self) -> str:
        prefix = f"{self.engine}: " if self.engine else ""
        return f"[{self.code}] {prefix}{self.message}"


class DecodeError(AnalysisError):
    """Backend output could not be repaired into an object or array."""

    code = "DECODE_FAILURE"

    def __init__(
        self,
        message: str,
        raw_excerpt: str = "",
        cleaned_excerpt: str = "",
        cause: BaseException | None = None,
        engine: str | None = None,
    ) -> None:
        super().__init__(message, cause=cause, engine=engine)
        self.raw_excerpt = raw_excerpt
        self.cleaned_excerpt = cleaned_excerpt


class ConfigurationError(AnalysisError):
    """Required configuration is missing or invalid at construction time."""

    code = "CONFIGURATION_ERROR"
