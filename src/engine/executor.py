"""
Request construction and the single outbound "generate text" call.

Every remote engine funnels its backend traffic through
:func:`execute_generation`: ``(system prompt, user prompt) -> raw text``.
Credentials are always passed in by the caller; nothing here reads the
environment.
"""

from __future__ import annotations

import time

import requests

from .config import PARAM_MAPPING, STANDARD_PARAMS
from .decoder import extract_response_content, get_total_tokens
from .errors import ConfigurationError

# ---------------------------------------------------------------------------
# Parameter handling
# ---------------------------------------------------------------------------


def filter_params(api_family: str, universal_params: dict) -> dict:
    """
    Translate universal parameter names to provider-specific names.

    Parameters with no provider-specific name are omitted.

    Args:
        api_family: ``'google'`` or ``'openai_compatible'``.
        universal_params: Dict of universal parameter names → values.

    Returns:
        Dict with provider-specific parameter names.
    """
    mapping = PARAM_MAPPING[api_family]
    return {
        provider_name: value
        for universal_name, value in universal_params.items()
        if (provider_name := mapping.get(universal_name)) is not None
    }


# ---------------------------------------------------------------------------
# Request construction
# ---------------------------------------------------------------------------


def build_request_headers(backend: dict, api_key: str) -> dict:
    """
    Construct HTTP authentication headers for a backend call.

    Raises:
        ConfigurationError: ``api_key`` is empty or ``auth_type`` is unknown.
    """
    if not api_key:
        raise ConfigurationError(
            f"API key missing for model '{backend.get('model_id', 'unknown')}'."
        )

    auth_type = backend["auth_type"]

    if auth_type == "bearer":
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    if auth_type == "api_key_param":
        # Gemini authenticates via URL query parameter, not a header
        return {"Content-Type": "application/json"}

    raise ConfigurationError(f"Unknown auth_type '{auth_type}' in backend config.")


def build_endpoint_url(backend: dict, api_key: str, model_id: str) -> str:
    """Return the full endpoint URL, appending the key for query-param auth."""
    endpoint = backend["endpoint"].format(model_id=model_id)
    if backend["auth_type"] == "api_key_param":
        return f"{endpoint}?key={api_key}"
    return endpoint


def build_request_payload(
    backend: dict,
    system_prompt: str,
    user_prompt: str,
    model_id: str,
    json_mode: bool = True,
) -> dict:
    """
    Construct the JSON request body in the backend's wire format.

    Args:
        backend: Entry from ``BACKEND_CONFIG``.
        system_prompt: Instructions sent as the system turn.
        user_prompt: Rendered user prompt.
        model_id: Model identifier to request.
        json_mode: Ask the backend to constrain output to JSON.

    Returns:
        Dict suitable for the ``json=`` argument of ``requests.post()``.
    """
    api_family = backend["api_family"]
    params = filter_params(api_family, STANDARD_PARAMS)

    if api_family == "google":
        if json_mode:
            params["responseMimeType"] = "application/json"
        return {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
            "generationConfig": params,
        }

    payload: dict = {
        "model": model_id,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
    }
    payload.update(params)
    if json_mode:
        payload["response_format"] = {"type": "json_object"}
    return payload


# ---------------------------------------------------------------------------
# Backend call execution
# ---------------------------------------------------------------------------


def execute_generation(
    backend: dict,
    api_key: str,
    system_prompt: str,
    user_prompt: str,
    model_id: str | None = None,
    timeout_seconds: float | None = None,
    json_mode: bool = True,
) -> dict:
    """
    Execute one stateless generation request and return its text.

    Args:
        backend: Entry from ``BACKEND_CONFIG``.
        api_key: Credential for the backend.
        system_prompt: System instructions.
        user_prompt: User prompt.
        model_id: Overrides ``backend['model_id']`` when given.
        timeout_seconds: Transport timeout; ``None`` waits indefinitely.
        json_mode: Ask the backend for JSON output.

    Returns:
        Dict with keys ``content`` (str), ``tokens_used`` (int),
        ``latency_seconds`` (float), ``model_id`` (str).

    Raises:
        requests.HTTPError: On non-2xx HTTP status.
        requests.Timeout: On request timeout.
        ValueError, KeyError, IndexError: On an unrecognizable response body.
    """
    model_id = model_id or backend["model_id"]
    headers = build_request_headers(backend, api_key)
    payload = build_request_payload(backend, system_prompt, user_prompt, model_id, json_mode)
    endpoint = build_endpoint_url(backend, api_key, model_id)

    start = time.monotonic()
    response = requests.post(
        endpoint,
        headers=headers,
        json=payload,
        timeout=timeout_seconds,
    )
    latency = round(time.monotonic() - start, 3)

    response.raise_for_status()  # raises HTTPError for 4xx/5xx

    response_json = response.json()
    return {
        "content": extract_response_content(response_json, backend["api_family"]),
        "tokens_used": get_total_tokens(response_json),
        "latency_seconds": latency,
        "model_id": model_id,
    }
