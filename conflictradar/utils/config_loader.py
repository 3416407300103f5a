from __future__ import annotations

import math
import os
import re
from datetime import timedelta
from pathlib import Path
from typing import Any, List, Mapping
from urllib.parse import urlparse

import yaml

from ..models import Source
from ..processors.risk import KeywordTiers
from .settings import HttpConfig, IngestionConfig, ProcessingConfig, TopicConfig

DEFAULT_CONFIG_PATH = "config/ingestion.yaml"

ENV_CONFIG_PATH = "CONFLICTRADAR_CONFIG"
ENV_RISK_THRESHOLD = "CONFLICTRADAR_RISK_THRESHOLD"
ENV_ENABLE_SCHEDULING = "CONFLICTRADAR_ENABLE_SCHEDULING"


class ConfigError(Exception):
    """Raised when the configuration file is invalid or missing required fields."""


REQUIRED_SOURCE_FIELDS = {"name", "url"}

_duration_re = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600}


def parse_duration(value: Any, *, field_name: str) -> timedelta:
    """Parse ``1500``, ``"1500ms"``, ``"30s"``, ``"5m"`` or ``"1h"``.

    Bare numbers are milliseconds.
    """
    if isinstance(value, bool):
        raise ConfigError(f"'{field_name}' must be a duration, got {value!r}")
    if isinstance(value, (int, float)):
        seconds = value / 1000
    else:
        match = _duration_re.match(str(value))
        if not match:
            raise ConfigError(f"'{field_name}' must be a duration like '30s' or '5m', got {value!r}")
        amount, unit = match.groups()
        seconds = float(amount) * _DURATION_UNITS[unit or "ms"]
    if seconds < 0:
        raise ConfigError(f"'{field_name}' must not be negative")
    return timedelta(seconds=seconds)


def _parse_bool(value: Any, *, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    raise ConfigError(f"'{field_name}' must be a boolean, got {value!r}")


def _parse_float(value: Any, *, field_name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{field_name}' must be a number, got {value!r}") from exc


def _string_list(value: Any, *, field_name: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"'{field_name}' must be a list of strings")
    return [v.strip() for v in value if v.strip()]


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping in the YAML configuration")
    return section


def _validate_source_dict(entry: dict) -> None:
    """Validate a single source mapping from YAML.

    Required fields: name (str), url (absolute http/https).
    Optional fields: weight (number >= 0, default 1.0), enabled (bool, default true).
    """
    missing = REQUIRED_SOURCE_FIELDS - set(entry)
    if missing:
        raise ConfigError(f"Missing required fields: {sorted(missing)} in {entry}")

    if not str(entry["name"]).strip():
        raise ConfigError(f"Source name must not be blank in {entry}")

    url_str = str(entry["url"]).strip()
    parsed = urlparse(url_str)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(f"Invalid URL '{url_str}'. Must be absolute http(s) URL.")

    if entry.get("weight") is not None:
        weight = _parse_float(entry["weight"], field_name="weight")
        if not math.isfinite(weight) or weight < 0:
            raise ConfigError(f"'weight' must be a finite number >= 0 for source '{entry['name']}'")


def _coerce_source(entry: dict) -> Source:
    weight = entry.get("weight")
    enabled = entry.get("enabled")
    return Source(
        name=str(entry["name"]).strip(),
        url=str(entry["url"]).strip(),
        weight=1.0 if weight is None else float(weight),
        enabled=True if enabled is None else _parse_bool(enabled, field_name="enabled"),
    )


def _load_sources(raw: Any) -> List[Source]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError("'sources' must be a list in the YAML configuration")
    sources: List[Source] = []
    for item in raw:
        if not isinstance(item, dict):
            raise ConfigError(f"Each source must be a mapping, got: {type(item)}")
        _validate_source_dict(item)
        sources.append(_coerce_source(item))
    names = [s.name for s in sources]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigError(f"Duplicate source names: {duplicates}")
    return sources


def _load_processing(section: Mapping[str, Any]) -> ProcessingConfig:
    defaults = ProcessingConfig()
    threshold = section.get("risk_threshold", defaults.risk_threshold)
    threshold = _parse_float(os.getenv(ENV_RISK_THRESHOLD, threshold), field_name="risk_threshold")
    if not 0.0 <= threshold <= 1.0:
        raise ConfigError("'risk_threshold' must be between 0 and 1")

    enable = section.get("enable_scheduling", defaults.enable_scheduling)
    enable = _parse_bool(os.getenv(ENV_ENABLE_SCHEDULING, enable), field_name="enable_scheduling")

    interval = defaults.schedule_interval
    if "schedule_interval" in section:
        interval = parse_duration(section["schedule_interval"], field_name="schedule_interval")
    if interval <= timedelta(0):
        raise ConfigError("'schedule_interval' must be positive")

    initial_delay = defaults.initial_delay
    if "initial_delay" in section:
        initial_delay = parse_duration(section["initial_delay"], field_name="initial_delay")

    max_workers = section.get("max_workers", defaults.max_workers)
    if isinstance(max_workers, bool) or not isinstance(max_workers, int) or max_workers < 1:
        raise ConfigError("'max_workers' must be a positive integer")

    return ProcessingConfig(
        schedule_interval=interval,
        initial_delay=initial_delay,
        risk_threshold=threshold,
        enable_scheduling=enable,
        max_workers=max_workers,
    )


def _load_http(section: Mapping[str, Any]) -> HttpConfig:
    defaults = HttpConfig()
    durations = {}
    for name in ("connect_timeout", "read_timeout", "retry_delay"):
        if name in section:
            durations[name] = parse_duration(section[name], field_name=name)

    max_retries = section.get("max_retries", defaults.max_retries)
    if isinstance(max_retries, bool) or not isinstance(max_retries, int) or max_retries < 1:
        raise ConfigError("'max_retries' must be a positive integer (total attempts)")

    user_agents = _string_list(section.get("user_agents"), field_name="user_agents")
    return HttpConfig(
        connect_timeout=durations.get("connect_timeout", defaults.connect_timeout),
        read_timeout=durations.get("read_timeout", defaults.read_timeout),
        max_retries=max_retries,
        retry_delay=durations.get("retry_delay", defaults.retry_delay),
        user_agents=tuple(user_agents) or defaults.user_agents,
    )


def _load_risk_analysis(section: Mapping[str, Any]) -> KeywordTiers:
    if not section:
        return KeywordTiers()
    conflict = _string_list(section.get("conflict_keywords"), field_name="conflict_keywords")
    high_risk = _string_list(section.get("high_risk_keywords"), field_name="high_risk_keywords")
    critical = _string_list(section.get("critical_keywords"), field_name="critical_keywords")
    if not (conflict or high_risk or critical):
        raise ConfigError("'risk_analysis' is present but defines no keywords")
    return KeywordTiers.of(conflict, high_risk, critical)


def _load_topics(section: Mapping[str, Any]) -> TopicConfig:
    defaults = TopicConfig()
    values = {}
    for name in ("news_ingested", "high_risk_detected", "batch_processed"):
        topic = str(section.get(name, getattr(defaults, name))).strip()
        if not topic:
            raise ConfigError(f"Topic '{name}' must not be blank")
        values[name] = topic
    return TopicConfig(**values)


def parse_config(data: Mapping[str, Any]) -> IngestionConfig:
    """Build an :class:`IngestionConfig` from an already-parsed mapping."""
    if not isinstance(data, dict):
        raise ConfigError("Top-level configuration must be a mapping")
    return IngestionConfig(
        sources=tuple(_load_sources(data.get("sources"))),
        processing=_load_processing(_section(data, "processing")),
        http=_load_http(_section(data, "http")),
        risk_analysis=_load_risk_analysis(_section(data, "risk_analysis")),
        topics=_load_topics(_section(data, "topics")),
    )


def resolve_config_path(path: Path | str | None = None) -> Path:
    return Path(path or os.getenv(ENV_CONFIG_PATH) or DEFAULT_CONFIG_PATH)


def load_config(path: Path | str | None = None) -> IngestionConfig:
    """Load the ingestion YAML into a typed :class:`IngestionConfig`.

    YAML structure (all sections optional except in practice ``sources``):
      - sources: list of {name, url, weight?, enabled?}
      - processing: schedule_interval, initial_delay, risk_threshold,
        enable_scheduling, max_workers
      - http: connect_timeout, read_timeout, max_retries, retry_delay, user_agents
      - risk_analysis: conflict_keywords, high_risk_keywords, critical_keywords
      - topics: news_ingested, high_risk_detected, batch_processed

    Unknown top-level keys are ignored for forward compatibility.
    """
    config_path = resolve_config_path(path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
    return parse_config(data)
