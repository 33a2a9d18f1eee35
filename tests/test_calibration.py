"""Tests for the AI calibration blender."""

import math

import pytest
from carbon.calibration import blend_kg, calibrate_kg, estimate_footprint
from carbon.regions import REGIONS

WORST = ("car_gasoline", "red_meat", "drink_alcohol", "high")
BEST = ("walk_bike", "vegetarian_vegan", "drink_water_tea", "none")


class TestBlendKg:
    """Clamp the AI value, blend, clamp again."""

    def test_blend_within_band(self):
        assert blend_kg(80.8, "uae", 40.0, enabled=True, blend=0.3) == 68.6

    def test_huge_ai_value_is_clamped_before_blending(self):
        """1000 kg is treated as the region max (40 for turkey)."""
        assert blend_kg(4.0, "turkey", 1000.0, enabled=True, blend=0.3) == 14.8

    def test_negative_ai_value_is_clamped(self):
        assert blend_kg(4.0, "turkey", -50.0, enabled=True, blend=0.3) == 10.0

    def test_full_weight_uses_clamped_ai_value(self):
        assert blend_kg(20.0, "usa", 500.0, enabled=True, blend=1.0) == 70.0

    def test_disabled_returns_deterministic(self):
        assert blend_kg(4.0, "turkey", 35.0, enabled=False, blend=0.3) == 4.0

    @pytest.mark.parametrize("hint", [None, math.nan, "12.5", True, [12]])
    def test_unusable_hint_returns_deterministic(self, hint):
        assert blend_kg(4.0, "turkey", hint, enabled=True, blend=0.3) == 4.0

    @pytest.mark.parametrize("region", list(REGIONS))
    @pytest.mark.parametrize("hint", [-1e9, -1.0, 0.0, 12.5, 55.0, 1e9, math.inf])
    def test_result_always_inside_region_band(self, region, hint):
        """No AI value can push the score outside [min, max]."""
        profile = REGIONS[region]
        for det in (0.0, 4.0, profile.avg, 200.0):
            result = blend_kg(det, region, hint, enabled=True, blend=0.3)
            assert profile.min <= result <= profile.max


class TestCalibrateKg:
    def test_deterministic_without_hint(self):
        assert calibrate_kg("turkey", *BEST, enabled=True, blend=0.3) == 4.0

    def test_worst_floor_applies_before_blend(self):
        assert calibrate_kg("uae", *WORST, enabled=False) == 80.8

    def test_same_inputs_same_output(self):
        first = calibrate_kg("europe", *WORST, ai_kg=30.0, enabled=True, blend=0.3)
        assert calibrate_kg("europe", *WORST, ai_kg=30.0, enabled=True, blend=0.3) == first


class TestEstimateFootprint:
    def test_deterministic_source(self):
        estimate = estimate_footprint("turkey", *BEST, enabled=True, blend=0.3)
        assert estimate.kg == 4.0
        assert estimate.deterministic_kg == 4.0
        assert estimate.source == "deterministic"
        assert estimate.ai_kg is None

    def test_calibrated_source(self):
        estimate = estimate_footprint("uae", *WORST, ai_kg=40.0, enabled=True, blend=0.3)
        assert estimate.kg == 68.6
        assert estimate.deterministic_kg == 80.8
        assert estimate.source == "calibrated"
        assert estimate.ai_kg == 40.0

    def test_disabled_calibration_keeps_deterministic_source(self):
        estimate = estimate_footprint("uae", *WORST, ai_kg=40.0, enabled=False)
        assert estimate.source == "deterministic"
        assert estimate.kg == 80.8
