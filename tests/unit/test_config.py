"""
Tests for settings and engine configuration.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from promolift.core.config import EfficiencyPolicy, EngineConfig, Settings, load_engine_config
from promolift.core.exceptions import ConfigurationError


PROJECT_CONFIG = Path(__file__).resolve().parents[2] / "config" / "engine.yaml"


class TestEngineConfig:
    """Tests for EngineConfig validation and loading."""

    def test_defaults(self):
        config = EngineConfig()

        assert config.efficiency.lift_weight == 0.40
        assert config.default_rates["cannibalization_rate"] == 0.08
        assert config.max_moving_average_window == 12
        assert config.drift_threshold_pct == 15.0

    def test_weights_must_sum_to_one(self):
        with pytest.raises(ValidationError):
            EfficiencyPolicy(lift_weight=0.5, roi_weight=0.5, leakage_weight=0.5)

    def test_roi_range_must_be_ordered(self):
        with pytest.raises(ValidationError):
            EfficiencyPolicy(roi_floor=2.0, roi_cap=1.0)

    def test_default_rate_out_of_range(self):
        with pytest.raises(ValidationError):
            EngineConfig(default_rates={"halo_rate": 1.5})

    def test_smoothing_grid_open_interval(self):
        with pytest.raises(ValidationError):
            EngineConfig(smoothing_grid=(0.0, 0.5))

    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_engine_config(tmp_path / "absent.yaml") == EngineConfig()

    def test_shipped_file_matches_defaults(self):
        assert load_engine_config(PROJECT_CONFIG) == EngineConfig()

    def test_custom_file(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text(
            "engine:\n"
            "  max_moving_average_window: 4\n"
            "  efficiency:\n"
            "    lift_weight: 0.5\n"
            "    roi_weight: 0.5\n"
            "    leakage_weight: 0.0\n",
            encoding="utf-8",
        )

        config = load_engine_config(path)

        assert config.max_moving_average_window == 4
        assert config.efficiency.leakage_weight == 0.0

    def test_invalid_values_raise_configuration_error(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("engine:\n  drift_threshold_pct: -5\n", encoding="utf-8")

        with pytest.raises(ConfigurationError) as exc_info:
            load_engine_config(path)

        assert exc_info.value.stage == "config"

    def test_malformed_yaml_raises_configuration_error(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("engine: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_engine_config(path)


class TestSettings:
    """Tests for environment-driven settings."""

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PROMOLIFT_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("PROMOLIFT_LOG_LEVEL", "debug")
        monkeypatch.setenv("PROMOLIFT_API_BASE_URL", "https://sales.example.com")

        settings = Settings(_env_file=None)

        assert settings.data_dir == tmp_path.resolve()
        assert settings.baselines_dir == tmp_path.resolve() / "baselines"
        assert settings.log_level == "DEBUG"
        assert settings.api_base_url == "https://sales.example.com"

    def test_timeout_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("PROMOLIFT_CALCULATION_TIMEOUT_SECONDS", "0")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_defaults_without_environment(self, monkeypatch):
        monkeypatch.delenv("PROMOLIFT_API_BASE_URL", raising=False)

        settings = Settings(_env_file=None)

        assert settings.api_base_url is None
        assert settings.engine_config_path.name == "engine.yaml"
