"""
Tests for the detection engine.
"""

import asyncio
import math
import time

import pytest

from conftest import StubClassifier, StubLocalizer
from detection.bbox import BOX_PATTERN
from detection.engine import (
    DetectionEngine,
    create_engine_from_config,
    unavailable_result,
    validate_input,
)
from detection.errors import DetectionUnavailable, InvalidInput
from inference.simulated_backend import GridLocalizer
from models.config import Config
from models.detection import PresenceEstimate, QcStatus


def _engine(estimate=None, error=None, localizer=None):
    return DetectionEngine(
        StubClassifier(estimate, error),
        localizer or StubLocalizer(),
        today=lambda: "2026-01-15",
    )


class TestScenarios:
    def test_clear_large_installation(self, solar_estimate):
        result = _engine(solar_estimate).detect("S1", 12.9716, 77.5946)

        assert result.has_solar is True
        assert result.confidence == 0.92
        assert result.panel_count_est == 14
        assert result.pv_area_sqm_est == 23.8
        assert result.capacity_kw_est == 4.3
        assert result.qc_status == QcStatus.VERIFIABLE
        assert "clear roof view" in result.qc_notes
        assert result.qc_notes[-1] == "large installation detected"
        assert len(result.bbox_or_mask.split(";")) == 14

    def test_low_confidence_no_solar(self):
        estimate = PresenceEstimate(has_solar=False, confidence=0.45)
        result = _engine(estimate).detect("S2", 10.0, 20.0)

        assert result.has_solar is False
        assert result.panel_count_est == 0
        assert result.pv_area_sqm_est == 0.0
        assert result.capacity_kw_est == 0.0
        assert result.qc_status == QcStatus.NOT_VERIFIABLE
        assert list(result.qc_notes) == ["insufficient image quality", "heavy shadow/cloud cover"]
        assert result.bbox_or_mask == ""

    def test_echoes_input_and_metadata(self, solar_estimate):
        result = _engine(solar_estimate).detect("ABC-1", -33.5, 151.25)
        assert result.sample_id == "ABC-1"
        assert result.lat == -33.5
        assert result.lon == 151.25
        assert result.image_metadata.source == "Satellite/Manual Upload"
        assert result.image_metadata.capture_date == "2026-01-15"
        assert result.processing_time_ms >= 0

    def test_confidence_rounded_before_qc(self):
        """0.8549 reports as 0.85, which is the moderate band."""
        estimate = PresenceEstimate(has_solar=True, confidence=0.8549, panel_count=5)
        result = _engine(estimate).detect("S3", 0.0, 0.0)
        assert result.confidence == 0.85
        assert result.qc_notes[0] == "moderate image quality"

    def test_localizer_count_mismatch_uses_box_count(self, solar_estimate):
        result = _engine(solar_estimate, localizer=StubLocalizer(override_count=16)).detect("S4", 1.0, 1.0)
        assert result.panel_count_est == 14
        assert len(result.boxes()) == 14

    def test_localizer_skipped_without_solar(self, no_solar_estimate):
        class FailingLocalizer:
            def localize(self, request, count):
                raise AssertionError("localize must not run without solar")

        result = _engine(no_solar_estimate, localizer=FailingLocalizer()).detect("S5", 1.0, 1.0)
        assert result.bbox_or_mask == ""


class TestDerivedFields:
    @pytest.mark.parametrize("panels", range(4, 24))
    def test_area_and_capacity_formula(self, panels):
        estimate = PresenceEstimate(has_solar=True, confidence=0.9, panel_count=panels)
        result = _engine(estimate).detect("S", 1.0, 1.0)
        expected_area = round(panels * 1.7, 1)
        assert result.pv_area_sqm_est == expected_area
        assert result.capacity_kw_est == round(expected_area * 180 / 1000, 1)


class TestValidation:
    @pytest.mark.parametrize("sample_id,lat,lon", [
        ("", 10.0, 10.0),
        ("   ", 10.0, 10.0),
        (None, 10.0, 10.0),
        ("S", 90.5, 10.0),
        ("S", -91, 10.0),
        ("S", 10.0, 180.01),
        ("S", float("nan"), 10.0),
        ("S", "12.0", 10.0),
        ("S", True, 10.0),
    ])
    def test_rejects_malformed(self, sample_id, lat, lon):
        with pytest.raises(InvalidInput):
            validate_input(sample_id, lat, lon)

    def test_accepts_bounds(self):
        validate_input("S", 90, -180)
        validate_input("S", -90.0, 180.0)

    def test_detect_rejects_before_scoring(self, solar_estimate):
        engine = _engine(solar_estimate)
        with pytest.raises(InvalidInput):
            engine.detect("S", 100.0, 0.0)
        assert engine.classifier.calls == 0

    def test_invalid_input_is_value_error(self):
        with pytest.raises(ValueError):
            validate_input("", 0.0, 0.0)


class TestBackendFailure:
    def test_unexpected_error_wrapped(self):
        engine = _engine(error=RuntimeError("model crashed"))
        with pytest.raises(DetectionUnavailable, match="model crashed"):
            engine.detect("S", 1.0, 1.0)

    def test_unavailable_propagates(self):
        engine = _engine(error=DetectionUnavailable("backend down"))
        with pytest.raises(DetectionUnavailable, match="backend down"):
            engine.detect("S", 1.0, 1.0)

    def test_unavailable_result_shape(self):
        result = unavailable_result("S9", 1.5, 2.5)
        assert result.qc_status == QcStatus.NOT_VERIFIABLE
        assert result.has_solar is False
        assert result.panel_count_est == 0
        assert result.bbox_or_mask == ""
        assert result.qc_notes == ("automated detection unavailable",)


class TestAsync:
    def test_detect_async_returns_result(self, solar_estimate):
        result = asyncio.run(_engine(solar_estimate).detect_async("S1", 1.0, 1.0, timeout_s=5))
        assert result.panel_count_est == 14

    def test_detect_async_timeout(self, solar_estimate):
        class SlowClassifier(StubClassifier):
            def presence(self, request):
                time.sleep(0.3)
                return super().presence(request)

        engine = DetectionEngine(SlowClassifier(solar_estimate), StubLocalizer())
        with pytest.raises(DetectionUnavailable, match="timed out"):
            asyncio.run(engine.detect_async("S1", 1.0, 1.0, timeout_s=0.01))

    def test_detect_async_validates(self, solar_estimate):
        with pytest.raises(InvalidInput):
            asyncio.run(_engine(solar_estimate).detect_async("", 1.0, 1.0))


class TestSimulatedEngine:
    @pytest.fixture
    def engine(self):
        return create_engine_from_config(Config.from_dict({"detection": {"seed": 123}}))

    def test_invariants_over_many_samples(self, engine):
        detected = 0
        for i in range(200):
            r = engine.detect(f"SAMPLE-{i}", 12.0 + i * 0.01, 77.0)
            if r.has_solar:
                detected += 1
                assert 0.75 <= r.confidence <= 0.99
                assert 4 <= r.panel_count_est <= 23
                assert r.qc_status == QcStatus.VERIFIABLE
                tokens = r.bbox_or_mask.split(";")
                assert len(tokens) == r.panel_count_est
                for token in tokens:
                    assert BOX_PATTERN.fullmatch(token)
                assert r.pv_area_sqm_est == round(r.panel_count_est * 1.7, 1)
                assert r.capacity_kw_est == round(r.pv_area_sqm_est * 180 / 1000, 1)
            else:
                assert 0.10 <= r.confidence <= 0.40
                assert r.panel_count_est == 0
                assert r.pv_area_sqm_est == 0.0
                assert r.capacity_kw_est == 0.0
                assert r.bbox_or_mask == ""
                assert r.qc_status == QcStatus.NOT_VERIFIABLE
            assert math.isclose(r.confidence, round(r.confidence, 2))
        # ~70% with the default threshold
        assert 100 < detected < 180

    def test_seeded_runs_repeat(self, engine):
        a = engine.detect("REPEAT-1", 1.0, 1.0)
        b = engine.detect("REPEAT-1", 1.0, 1.0)
        assert a.confidence == b.confidence
        assert a.bbox_or_mask == b.bbox_or_mask

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_engine_from_config(Config.from_dict({"detection": {"backend": "magic"}}))

    def test_grid_localizer_wired_with_geometry(self):
        cfg = Config.from_dict({"detection": {"seed": 1}, "geometry": {"frame_size": 1280}})
        engine = create_engine_from_config(cfg)
        assert isinstance(engine.localizer, GridLocalizer)
        assert engine.localizer.geometry.frame_size == 1280
