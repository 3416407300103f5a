"""
Tests for loading and validating the ingestion YAML.
"""

from datetime import timedelta
from pathlib import Path

import pytest

from conflictradar.utils.config_loader import (
    ENV_CONFIG_PATH,
    ENV_ENABLE_SCHEDULING,
    ENV_RISK_THRESHOLD,
    ConfigError,
    load_config,
    parse_config,
    parse_duration,
)
from conflictradar.utils.settings import DEFAULT_USER_AGENTS

SAMPLE_CONFIG = Path(__file__).resolve().parents[1] / "config" / "ingestion.yaml"

MINIMAL = """
sources:
  - name: Alpha
    url: https://alpha.example.com/rss
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (ENV_CONFIG_PATH, ENV_RISK_THRESHOLD, ENV_ENABLE_SCHEDULING):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def write_config(tmp_path):
    def _write(text):
        path = tmp_path / "ingestion.yaml"
        path.write_text(text, encoding="utf-8")
        return path

    return _write


class TestDurations:
    """Tests for duration parsing."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (1500, timedelta(seconds=1.5)),
            ("1500", timedelta(seconds=1.5)),
            ("250ms", timedelta(milliseconds=250)),
            ("30s", timedelta(seconds=30)),
            ("2.5s", timedelta(seconds=2.5)),
            ("5m", timedelta(minutes=5)),
            ("1h", timedelta(hours=1)),
            (0, timedelta(0)),
        ],
    )
    def test_valid(self, value, expected):
        """Bare numbers are milliseconds; suffixed strings use their unit."""
        assert parse_duration(value, field_name="d") == expected

    @pytest.mark.parametrize("value", ["soon", "5 days", "-3s", True, -1])
    def test_invalid(self, value):
        """Garbage, negatives and booleans are rejected."""
        with pytest.raises(ConfigError):
            parse_duration(value, field_name="d")


class TestLoading:
    """Tests for reading configuration files."""

    def test_sample_config_loads(self):
        """The bundled sample configuration is valid."""
        config = load_config(SAMPLE_CONFIG)

        assert len(config.sources) == 3
        assert [s.name for s in config.enabled_sources] == ["BBC World", "Al Jazeera"]
        assert config.processing.schedule_interval == timedelta(minutes=5)
        assert "massacre" in config.risk_analysis.critical

    def test_defaults(self, write_config):
        """Omitted sections fall back to defaults."""
        config = load_config(write_config(MINIMAL))

        source = config.sources[0]
        assert (source.name, source.url, source.weight, source.enabled) == (
            "Alpha",
            "https://alpha.example.com/rss",
            1.0,
            True,
        )
        assert config.processing.schedule_interval == timedelta(minutes=5)
        assert config.processing.initial_delay == timedelta(seconds=30)
        assert config.processing.risk_threshold == 0.6
        assert config.processing.enable_scheduling is True
        assert config.http.connect_timeout == timedelta(seconds=10)
        assert config.http.read_timeout == timedelta(seconds=30)
        assert config.http.max_retries == 3
        assert config.http.retry_delay == timedelta(seconds=1)
        assert config.http.user_agents == DEFAULT_USER_AGENTS
        assert config.topics.news_ingested == "news.ingested"
        assert config.topics.high_risk_detected == "news.high-risk"
        assert config.topics.batch_processed == "news.batch-processed"

    def test_full_config(self, write_config):
        """Every section is read and typed."""
        config = load_config(
            write_config(
                MINIMAL
                + """
    weight: 0.7
    enabled: false
processing:
  schedule_interval: 10m
  initial_delay: 0
  risk_threshold: 0.75
  enable_scheduling: false
  max_workers: 2
http:
  connect_timeout: 2s
  read_timeout: 5000
  max_retries: 5
  retry_delay: 500ms
  user_agents: ["agent-a", "agent-b"]
risk_analysis:
  conflict_keywords: [Riot, protest]
  high_risk_keywords: [bomb]
  critical_keywords: [nuclear]
topics:
  high_risk_detected: alerts
"""
            )
        )

        assert config.sources[0].weight == 0.7
        assert config.sources[0].enabled is False
        assert config.enabled_sources == ()
        assert config.processing.schedule_interval == timedelta(minutes=10)
        assert config.processing.initial_delay == timedelta(0)
        assert config.processing.risk_threshold == 0.75
        assert config.processing.enable_scheduling is False
        assert config.processing.max_workers == 2
        assert config.http.connect_timeout == timedelta(seconds=2)
        assert config.http.read_timeout == timedelta(seconds=5)
        assert config.http.max_retries == 5
        assert config.http.retry_delay == timedelta(milliseconds=500)
        assert config.http.user_agents == ("agent-a", "agent-b")
        assert config.risk_analysis.conflict == frozenset({"riot", "protest"})
        assert config.risk_analysis.high_risk == frozenset({"bomb"})
        assert config.topics.high_risk_detected == "alerts"
        assert config.topics.news_ingested == "news.ingested"

    def test_path_from_environment(self, write_config, monkeypatch):
        """Without an explicit path the environment variable is used."""
        monkeypatch.setenv(ENV_CONFIG_PATH, str(write_config(MINIMAL)))

        assert load_config().sources[0].name == "Alpha"

    def test_environment_overrides(self, write_config, monkeypatch):
        """Threshold and scheduling can be overridden from the environment."""
        monkeypatch.setenv(ENV_RISK_THRESHOLD, "0.9")
        monkeypatch.setenv(ENV_ENABLE_SCHEDULING, "false")

        config = load_config(write_config(MINIMAL))

        assert config.processing.risk_threshold == 0.9
        assert config.processing.enable_scheduling is False

    def test_missing_file(self, tmp_path):
        """A missing file is a configuration error."""
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, write_config):
        """Broken YAML is wrapped in a configuration error."""
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(write_config("sources: [unclosed"))

    def test_empty_file(self, write_config):
        """An empty file yields no sources and defaults elsewhere."""
        config = load_config(write_config(""))

        assert config.sources == ()


class TestValidation:
    """Tests for rejecting invalid configuration."""

    @pytest.mark.parametrize(
        "data,message",
        [
            ({"sources": [{"name": "A"}]}, "Missing required fields"),
            ({"sources": [{"name": "A", "url": "feeds/local.xml"}]}, "Invalid URL"),
            ({"sources": [{"name": "A", "url": "ftp://example.com/rss"}]}, "Invalid URL"),
            ({"sources": [{"name": " ", "url": "https://a.example.com"}]}, "must not be blank"),
            ({"sources": [{"name": "A", "url": "https://a.example.com", "weight": -1}]}, "weight"),
            ({"sources": [{"name": "A", "url": "https://a.example.com", "weight": "heavy"}]}, "weight"),
            (
                {"sources": [{"name": "A", "url": "https://a.example.com"}, {"name": "A", "url": "https://b.example.com"}]},
                "Duplicate",
            ),
            ({"sources": {"name": "A"}}, "must be a list"),
            ({"processing": {"risk_threshold": 1.5}}, "risk_threshold"),
            ({"processing": {"risk_threshold": "high"}}, "risk_threshold"),
            ({"processing": {"schedule_interval": 0}}, "schedule_interval"),
            ({"processing": {"max_workers": 0}}, "max_workers"),
            ({"processing": {"enable_scheduling": "maybe"}}, "enable_scheduling"),
            ({"http": {"max_retries": 0}}, "max_retries"),
            ({"http": {"connect_timeout": "fast"}}, "connect_timeout"),
            ({"http": {"user_agents": "one-agent"}}, "user_agents"),
            ({"risk_analysis": {"conflict_keywords": []}}, "no keywords"),
            ({"topics": {"news_ingested": " "}}, "must not be blank"),
            ({"processing": ["not", "a", "mapping"]}, "must be a mapping"),
        ],
    )
    def test_rejected(self, data, message):
        """Invalid values raise ConfigError naming the problem."""
        with pytest.raises(ConfigError, match=message):
            parse_config(data)

    def test_top_level_must_be_mapping(self):
        """A YAML list at the top level is rejected."""
        with pytest.raises(ConfigError):
            parse_config(["sources"])


class TestSourceWeights:
    """Tests for rejecting unusable source weights."""

    @pytest.mark.parametrize("weight", [float("inf"), float("-inf"), float("nan")])
    def test_non_finite_weight_rejected(self, weight):
        """Infinite and NaN weights are configuration errors."""
        with pytest.raises(ConfigError, match="finite"):
            parse_config({"sources": [{"name": "A", "url": "https://a.example.com", "weight": weight}]})

    @pytest.mark.parametrize("literal", [".inf", ".nan", "-.inf"])
    def test_yaml_special_floats_rejected(self, write_config, literal):
        """YAML's special float literals are rejected the same way."""
        with pytest.raises(ConfigError, match="finite"):
            load_config(write_config(MINIMAL + f"    weight: {literal}\n"))

    def test_zero_weight_allowed(self):
        """A zero weight is valid and mutes the source's scores."""
        config = parse_config({"sources": [{"name": "A", "url": "https://a.example.com", "weight": 0}]})

        assert config.sources[0].weight == 0.0
