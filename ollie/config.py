"""
Typed configuration model with precedence-based loader.

Precedence (lowest to highest):
    defaults < config file (YAML) < env vars < CLI flags < per-session overrides
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from ollie.llm.options import Options


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------

@dataclass
class ProviderConfig:
    name: str = "ollama"
    model: str = "llama3.2"
    endpoint: str = ""
    api_key_env: str = ""
    timeout_seconds: int = 120
    max_retries: int = 2


@dataclass
class OptionsConfig:
    num_ctx: int | None = None
    temperature: float | None = None
    seed: int | None = None
    num_predict: int | None = None
    num_gpu: int | None = None
    top_p: float | None = None
    stop: list[str] = field(default_factory=list)

    def to_options(self) -> Options:
        return Options(**asdict(self))


@dataclass
class SessionConfig:
    system_prompt: str = ""


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------

@dataclass
class OllieConfig:
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    options: OptionsConfig = field(default_factory=OptionsConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    profiles: dict[str, dict[str, Any]] = field(default_factory=dict)

    # ----- per-session overrides (applied last) ----
    _overrides: dict[str, Any] = field(default_factory=dict, repr=False)

    def set_override(self, dotpath: str, value: Any) -> None:
        """Set a per-session override using dot notation (e.g. 'provider.model')."""
        self._overrides[dotpath] = value
        _apply_dotpath(self, dotpath, value)

    def get_override(self, dotpath: str) -> Any | None:
        return self._overrides.get(dotpath)

    def to_dict(self) -> dict:
        d = asdict(self)
        d.pop("_overrides", None)
        return d


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _apply_dotpath(obj: Any, dotpath: str, value: Any) -> None:
    """Walk obj via dotpath and set the final attribute."""
    parts = dotpath.split(".")
    for part in parts[:-1]:
        obj = getattr(obj, part)
    if not hasattr(obj, parts[-1]):
        raise AttributeError(f"Unknown config key: {dotpath}")
    setattr(obj, parts[-1], value)


def _deep_merge(base: dict, overlay: dict) -> dict:
    """Recursively merge overlay into base, returning a new dict."""
    merged = dict(base)
    for k, v in overlay.items():
        if k in merged and isinstance(merged[k], dict) and isinstance(v, dict):
            merged[k] = _deep_merge(merged[k], v)
        else:
            merged[k] = v
    return merged


def _coerce(value: str, target_type: type) -> Any:
    """Coerce a string env value to the target type."""
    if target_type is bool:
        return value.lower() in ("1", "true", "yes", "on")
    if target_type is int:
        return int(value)
    if target_type is float:
        return float(value)
    if target_type is list:
        return [s.strip() for s in value.split(",") if s.strip()]
    return value


def _build_section(cls: type, raw: dict) -> Any:
    """Build a dataclass section from a raw dict, ignoring unknown keys."""
    valid_fields = {f.name for f in fields(cls)}
    filtered = {k: v for k, v in raw.items() if k in valid_fields}
    return cls(**filtered)


# ---------------------------------------------------------------------------
# ENV var mapping
# ---------------------------------------------------------------------------

_ENV_MAP: dict[str, tuple[str, type]] = {
    "OLLIE_PROVIDER":            ("provider.name", str),
    "OLLIE_MODEL":               ("provider.model", str),
    "OLLIE_ENDPOINT":            ("provider.endpoint", str),
    "OLLIE_API_KEY_ENV":         ("provider.api_key_env", str),
    "OLLIE_TIMEOUT":             ("provider.timeout_seconds", int),
    "OLLIE_MAX_RETRIES":         ("provider.max_retries", int),
    "OLLIE_NUM_CTX":             ("options.num_ctx", int),
    "OLLIE_TEMPERATURE":         ("options.temperature", float),
    "OLLIE_SEED":                ("options.seed", int),
    "OLLIE_NUM_PREDICT":         ("options.num_predict", int),
    "OLLIE_STOP":                ("options.stop", list),
    "OLLIE_SYSTEM_PROMPT":       ("session.system_prompt", str),
}

# Host variable honoured for Ollama only, when no explicit endpoint is set.
_LEGACY_OLLAMA_HOST_ENV = "OLLAMA_SERVER"


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load_config(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
    environ: dict[str, str] | None = None,
) -> OllieConfig:
    """
    Build an OllieConfig by layering sources in precedence order:

        defaults  <  config file  <  env vars  <  CLI flags  <  per-session overrides

    Parameters
    ----------
    config_path : path to YAML config file (optional)
    profile : name of a profile to apply from the config file
    cli_overrides : dict of dotpath -> value CLI flag overrides
    environ : environment mapping to read instead of ``os.environ``
    """
    env = os.environ if environ is None else environ
    raw: dict[str, Any] = {}

    # --- 1. Config file ---
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.is_file():
            with p.open("r", encoding="utf-8") as f:
                file_data = yaml.safe_load(f) or {}
            if not isinstance(file_data, dict):
                raise ValueError(f"Config file {p} must contain a mapping")
            raw = _deep_merge(raw, file_data)

    # --- 2. Profile overlay ---
    if profile:
        profile_data = raw.get("profiles", {}).get(profile)
        if profile_data is None:
            raise KeyError(f"Unknown profile: {profile!r}")
        raw = _deep_merge(raw, profile_data)

    # --- Build sections from raw ---
    cfg = OllieConfig(
        provider=_build_section(ProviderConfig, raw.get("provider", {})),
        options=_build_section(OptionsConfig, raw.get("options", {})),
        session=_build_section(SessionConfig, raw.get("session", {})),
        profiles=raw.get("profiles", {}),
    )

    # --- 3. Env var overrides ---
    for env_var, (dotpath, target_type) in _ENV_MAP.items():
        val = env.get(env_var)
        if val is not None:
            _apply_dotpath(cfg, dotpath, _coerce(val, target_type))

    legacy_host = env.get(_LEGACY_OLLAMA_HOST_ENV)
    if legacy_host and cfg.provider.name == "ollama" and not cfg.provider.endpoint:
        cfg.provider.endpoint = legacy_host

    # --- 4. CLI flag overrides ---
    if cli_overrides:
        for dotpath, value in cli_overrides.items():
            if value is not None:
                _apply_dotpath(cfg, dotpath, value)

    return cfg
