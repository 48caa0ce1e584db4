"""Tests for configuration loading."""

import pytest

from unitwatch.config import WatcherConfig, load_config, parse_duration
from unitwatch.errors import ConfigError


class TestParseDuration:
    """Tests for parse_duration."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (5, 5.0),
            (2.5, 2.5),
            ("10", 10.0),
            ("10s", 10.0),
            ("500ms", 0.5),
            ("2m", 120.0),
            ("1h30m", 5400.0),
            ("1m30s", 90.0),
            ("1.5s", 1.5),
        ],
    )
    def test_valid(self, value, expected):
        """Test supported duration forms."""
        assert parse_duration(value) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "value",
        [
            "",
            "ten seconds",
            "10x",
            "s10",
            "1h 30m",
            None,
            True,
            "nan",
            "inf",
            "-inf",
            "1e400",
            float("nan"),
            float("inf"),
        ],
    )
    def test_invalid(self, value):
        """Test unparsable or non-finite durations raise ConfigError."""
        with pytest.raises(ConfigError):
            parse_duration(value)


class TestWatcherConfig:
    """Tests for WatcherConfig validation."""

    def test_defaults_are_valid(self):
        """Test the default configuration validates."""
        config = WatcherConfig().validate()

        assert config.tick_interval == 10.0
        assert config.max_rows == 500
        assert config.flush_on_shutdown is False

    @pytest.mark.parametrize(
        "field, value",
        [
            ("tick_interval", 0.0),
            ("sample_window", -1.0),
            ("max_age", 0.0),
            ("max_rows", 0),
            ("tick_interval", float("nan")),
            ("sample_window", float("inf")),
            ("max_age", float("nan")),
            ("max_rows", 2.9),
            ("max_rows", True),
        ],
    )
    def test_rejects_non_positive(self, field, value):
        """Test invalid values are rejected rather than clamped."""
        with pytest.raises(ConfigError):
            WatcherConfig(**{field: value}).validate()


class TestLoadConfig:
    """Tests for load_config layering."""

    def test_yaml_file(self, tmp_path):
        """Test values are read from a YAML file."""
        path = tmp_path / "config.yaml"
        path.write_text(
            "tick_interval: 30s\n"
            "sample_window: 500ms\n"
            "max_rows: 50\n"
            "flush_on_shutdown: true\n"
            "unit_patterns: [nginx*]\n"
            "sinks:\n"
            "  - type: jsonl\n"
            "    path: /tmp/rows.jsonl\n",
            encoding="utf-8",
        )

        config = load_config(path, env={})

        assert config.tick_interval == 30.0
        assert config.sample_window == 0.5
        assert config.max_rows == 50
        assert config.max_age == 60.0
        assert config.flush_on_shutdown is True
        assert config.unit_patterns == ["nginx*"]
        assert config.sinks == [{"type": "jsonl", "path": "/tmp/rows.jsonl"}]

    def test_env_overrides_file_and_cli_overrides_env(self, tmp_path):
        """Test precedence is file < environment < overrides."""
        path = tmp_path / "config.yaml"
        path.write_text("tick_interval: 30s\nmax_rows: 50\n", encoding="utf-8")
        env = {"UNITWATCH_TICK_INTERVAL": "20s", "UNITWATCH_MAX_ROWS": "25"}

        config = load_config(path, env=env, overrides={"max_rows": 10, "max_age": None})

        assert config.tick_interval == 20.0
        assert config.max_rows == 10
        assert config.max_age == 60.0

    def test_env_boolean(self):
        """Test boolean environment values."""
        assert load_config(env={"UNITWATCH_FLUSH_ON_SHUTDOWN": "yes"}).flush_on_shutdown
        assert not load_config(env={"UNITWATCH_FLUSH_ON_SHUTDOWN": "false"}).flush_on_shutdown

    def test_empty_file(self, tmp_path):
        """Test an empty YAML file gives the defaults."""
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")

        assert load_config(path, env={}) == WatcherConfig()

    @pytest.mark.parametrize(
        "content",
        [
            "tick_interval: soon\n",
            "max_rows: many\n",
            "max_age: -5s\n",
            "bogus_key: 1\n",
            "- just\n- a list\n",
            "tick_interval: [unclosed\n",
            "sinks:\n  - path: no-type.jsonl\n",
            "max_rows: 2.9\n",
            "max_rows: 1e3\n",
            "tick_interval: .nan\n",
            "max_age: .inf\n",
        ],
    )
    def test_invalid_files(self, tmp_path, content):
        """Test malformed files are configuration errors."""
        path = tmp_path / "config.yaml"
        path.write_text(content, encoding="utf-8")

        with pytest.raises(ConfigError):
            load_config(path, env={})

    def test_missing_file(self, tmp_path):
        """Test a missing file is a configuration error."""
        with pytest.raises(ConfigError):
            load_config(tmp_path / "missing.yaml", env={})

    def test_invalid_env_duration(self):
        """Test an unparsable environment duration is rejected."""
        with pytest.raises(ConfigError):
            load_config(env={"UNITWATCH_MAX_AGE": "later"})

    @pytest.mark.parametrize(
        "name, value",
        [
            ("UNITWATCH_TICK_INTERVAL", "nan"),
            ("UNITWATCH_TICK_INTERVAL", "inf"),
            ("UNITWATCH_SAMPLE_WINDOW", "NaN"),
            ("UNITWATCH_MAX_AGE", "infinity"),
            ("UNITWATCH_MAX_ROWS", "2.9"),
        ],
    )
    def test_rejects_non_finite_or_fractional_env(self, name, value):
        """Test non-finite durations and fractional counts are not accepted."""
        with pytest.raises(ConfigError):
            load_config(env={name: value})

    def test_integer_string_max_rows(self):
        """Test an integer string count is accepted as is."""
        assert load_config(env={"UNITWATCH_MAX_ROWS": " 25 "}).max_rows == 25
