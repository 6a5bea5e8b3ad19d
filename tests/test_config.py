"""Tests for invoicemerge.config — MergeConfig defaults, mutation, and validation."""

import pytest

from invoicemerge.config import ConfigValidationError, MergeConfig


class TestMergeConfig:
    def test_default_buckets(self):
        cfg = MergeConfig()
        assert cfg.row_bucket_first == 5.0
        assert cfg.column_bucket_first == 2.0
        assert cfg.column_bucket_second == 5.0
        assert cfg.row_bucket_second == 5.0
        assert cfg.row_bucket_third == 2.5
        assert cfg.line_bucket == 8.0

    def test_default_thresholds(self):
        cfg = MergeConfig()
        assert cfg.rotation_tolerance_deg == 0.1
        assert cfg.height_similarity_ratio == 0.5
        assert cfg.first_pass_max_gap == 2.0
        assert cfg.second_pass_gap_tol_mult == 1.2
        assert cfg.third_pass_gap_tol_mult == 0.2
        assert cfg.extract_mode == "chars"

    def test_override(self):
        cfg = MergeConfig(line_bucket=10.0, extract_mode="words")
        assert cfg.line_bucket == 10.0
        assert cfg.extract_mode == "words"

    def test_vars_round_trip(self):
        """vars(cfg) should produce a dict that can reconstruct the config."""
        cfg = MergeConfig(row_bucket_third=3.0, overlay_draw_text=False)
        cfg2 = MergeConfig(**vars(cfg))
        assert cfg2.row_bucket_third == 3.0
        assert cfg2.overlay_draw_text is False
        assert vars(cfg) == vars(cfg2)


class TestConfigValidation:
    """Validate __post_init__ range guards."""

    @pytest.mark.parametrize(
        "name",
        [
            "row_bucket_first",
            "column_bucket_first",
            "column_bucket_second",
            "row_bucket_second",
            "row_bucket_third",
            "line_bucket",
        ],
    )
    def test_bucket_must_be_positive(self, name):
        with pytest.raises(ConfigValidationError, match=name):
            MergeConfig(**{name: 0.0})

    def test_negative_multiplier_rejected(self):
        with pytest.raises(ConfigValidationError, match="third_pass_gap_tol_mult"):
            MergeConfig(third_pass_gap_tol_mult=-0.2)

    def test_zero_gap_allowed(self):
        cfg = MergeConfig(first_pass_max_gap=0.0, rotation_tolerance_deg=0.0)
        assert cfg.first_pass_max_gap == 0.0

    def test_negative_gap_rejected(self):
        with pytest.raises(ConfigValidationError, match="first_pass_max_gap"):
            MergeConfig(first_pass_max_gap=-1.0)

    @pytest.mark.parametrize("value", [0.0, 1.0, 1.5])
    def test_height_ratio_open_interval(self, value):
        with pytest.raises(ConfigValidationError, match="height_similarity_ratio"):
            MergeConfig(height_similarity_ratio=value)

    def test_overlay_width_rejected(self):
        with pytest.raises(ConfigValidationError, match="overlay_outline_width"):
            MergeConfig(overlay_outline_width=0)

    def test_unknown_extract_mode(self):
        with pytest.raises(ConfigValidationError, match="extract_mode"):
            MergeConfig(extract_mode="lines")

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            MergeConfig(line_bucket=-8.0)
