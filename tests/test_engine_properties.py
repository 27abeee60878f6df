"""
Property-based tests for ExpressionEngine.

These tests verify the calibration state machine, normalization against
the baseline, invalid-frame handling, and per-session isolation using
Hypothesis for property-based testing.
"""

import logging

import pytest
import numpy as np
from hypothesis import given, settings
import hypothesis.strategies as st

from expression_analysis.errors import InvalidInputError, InvalidLandmarksError
from expression_analysis.features import ExpressionMetrics
from expression_analysis.inference import EngineConfig, EngineState, ExpressionEngine
from expression_analysis.smile import SmileThresholds


NUM_LANDMARKS = 478


def make_face(mouth_width=0.10, mouth_height=0.02, eye_height=0.03, nose=(0.5, 0.55, 0.0)):
    """Build a (478, 3) MediaPipe-layout frame with controlled geometry."""
    arr = np.zeros((NUM_LANDMARKS, 3), dtype=np.float64)
    cx, my = 0.5, 0.7
    arr[78] = (cx - mouth_width / 2, my, 0.0)
    arr[308] = (cx + mouth_width / 2, my, 0.0)
    arr[13] = (cx, my - mouth_height / 2, 0.0)
    arr[14] = (cx, my + mouth_height / 2, 0.0)
    arr[159] = (0.4, 0.4, 0.0)
    arr[145] = (0.4, 0.4 + eye_height, 0.0)
    arr[386] = (0.6, 0.4, 0.0)
    arr[374] = (0.6, 0.4 + eye_height, 0.0)
    arr[1] = nose
    arr[123] = (0.3, 0.55, 0.0)
    arr[352] = (0.7, 0.55, 0.0)
    return arr


def calibrated_engine(config=None, **face_kwargs):
    engine = ExpressionEngine(config)
    neutral = make_face(**face_kwargs)
    for _ in range(engine.config.calibration_samples):
        engine.analyze(neutral)
    assert engine.is_calibrated
    return engine


class TestCalibrationStateMachine:
    """
    **Property: One-way calibration**

    The engine emits neutral metrics for the first calibration_samples
    frames, then switches to normalized output and never reverts.
    """

    def test_29_frames_uncalibrated_30th_calibrates(self):
        engine = ExpressionEngine()
        face = make_face()

        for _ in range(29):
            metrics = engine.analyze(face, {"happy": 1.0})
            assert metrics == ExpressionMetrics.neutral()
        assert not engine.is_calibrated
        assert engine.state is EngineState.UNCALIBRATED
        assert engine.baseline.sample_count == 29

        metrics = engine.analyze(face)
        assert metrics.is_neutral()
        assert engine.is_calibrated
        assert engine.state is EngineState.CALIBRATED
        assert engine.baseline.is_calibrated

        metrics = engine.analyze(make_face(mouth_height=0.03))
        assert not metrics.is_neutral()
        assert metrics.mouth_openness == pytest.approx(1.5)
        assert metrics.eye_openness == pytest.approx(1.0)

    def test_calibration_frames_do_not_feed_smoother(self):
        engine = ExpressionEngine()
        for _ in range(30):
            engine.analyze(make_face(), {"happy": 1.0})
        assert len(engine.smoother) == 0

    @settings(max_examples=50)
    @given(frames=st.integers(min_value=30, max_value=80))
    def test_never_reverts(self, frames):
        engine = ExpressionEngine()
        for i in range(frames):
            engine.analyze(make_face(mouth_height=0.01 + (i % 5) * 0.01))
            if i >= 29:
                assert engine.is_calibrated
        assert engine.baseline.sample_count == 30

    def test_baseline_frozen_after_calibration(self):
        engine = calibrated_engine()
        frozen = engine.baseline
        for _ in range(10):
            engine.analyze(make_face(mouth_height=0.2, eye_height=0.1))
        assert engine.baseline == frozen

    def test_custom_calibration_samples(self):
        engine = ExpressionEngine(EngineConfig(calibration_samples=3))
        for _ in range(2):
            engine.analyze(make_face())
        assert not engine.is_calibrated
        engine.analyze(make_face())
        assert engine.is_calibrated


class TestNormalization:
    """
    **Property: Baseline normalization**

    *For any* calibrated engine, openness values are ratios to the
    baseline clamped to [0, openness_max] and smile is in [0, 1].
    """

    @settings(max_examples=100)
    @given(
        mouth_height=st.floats(min_value=0.0, max_value=1.0),
        eye_height=st.floats(min_value=0.0, max_value=0.5),
        mouth_width=st.floats(min_value=0.0, max_value=1.0),
        happy=st.one_of(st.none(), st.floats(min_value=0.0, max_value=1.0)),
    )
    def test_output_ranges(self, mouth_height, eye_height, mouth_width, happy):
        engine = calibrated_engine()
        expressions = None if happy is None else {"happy": happy}
        metrics = engine.analyze(
            make_face(mouth_width=mouth_width, mouth_height=mouth_height, eye_height=eye_height),
            expressions,
        )

        assert 0.0 <= metrics.mouth_openness <= 2.0
        assert 0.0 <= metrics.eye_openness <= 2.0
        assert 0.0 <= metrics.smile_level <= 1.0
        assert np.all(np.isfinite(metrics.to_array()))

    def test_openness_clamped_at_two(self):
        engine = calibrated_engine()
        metrics = engine.analyze(make_face(mouth_height=0.2, eye_height=0.3))
        assert metrics.mouth_openness == 2.0
        assert metrics.eye_openness == 2.0

    def test_zero_baseline_does_not_divide_by_zero(self):
        engine = calibrated_engine(mouth_height=0.0)
        assert engine.baseline.mean_mouth_height == 0.0

        metrics = engine.analyze(make_face(mouth_height=0.0))
        assert metrics.mouth_openness == 0.0
        assert metrics.smile_level == 1.0

        metrics = engine.analyze(make_face(mouth_height=0.01))
        assert metrics.mouth_openness == 2.0

    def test_head_pose_passed_through(self):
        engine = calibrated_engine()
        metrics = engine.analyze(make_face(nose=(0.55, 0.50, 0.0)))
        assert metrics.head_pose.pitch == pytest.approx((0.50 - 0.40) * 90)
        assert metrics.head_pose.yaw == pytest.approx((0.55 - 0.50) * 90)
        assert metrics.head_pose.roll == pytest.approx(0.0)

    def test_geometry_only_when_no_vector(self):
        engine = calibrated_engine()
        metrics = engine.analyze(make_face(mouth_width=40.0, mouth_height=5.0))
        assert metrics.smile_level == pytest.approx(1.0, abs=1e-4)

    def test_low_happy_scales_geometry(self):
        engine = calibrated_engine()
        metrics = engine.analyze(make_face(mouth_width=40.0, mouth_height=5.0), {"happy": 0.3})
        assert metrics.smile_level == pytest.approx(0.25, abs=1e-4)

    def test_smoothed_happy_drives_fusion(self):
        engine = calibrated_engine()
        face = make_face(mouth_width=0.02, mouth_height=0.02)  # ratio 1, geo 0

        engine.analyze(face, {"happy": 1.0})
        metrics = engine.analyze(face, {"happy": 0.4})
        # window mean 0.7 -> nn 0.5 -> 0.75 * 0.5
        assert metrics.smile_level == pytest.approx(0.375)

    def test_custom_config_tuning(self):
        config = EngineConfig(
            calibration_samples=1,
            window_size=1,
            openness_max=3.0,
            smile=SmileThresholds(neural_weight=1.0),
        )
        engine = calibrated_engine(config)
        metrics = engine.analyze(make_face(mouth_height=0.05), {"happy": 1.0})
        assert metrics.mouth_openness == pytest.approx(2.5)
        assert metrics.smile_level == pytest.approx(1.0)


class TestInvalidFrames:
    """
    **Property: Invalid frames are skipped**

    An invalid frame raises from analyze() without touching engine state,
    and process_frame() reports it without raising.
    """

    @pytest.mark.parametrize("bad", [None, [], np.zeros((100, 3)), np.zeros((478, 4))])
    def test_analyze_raises_without_mutation(self, bad):
        engine = ExpressionEngine()
        engine.analyze(make_face())
        before = engine.baseline

        with pytest.raises(InvalidLandmarksError):
            engine.analyze(bad)

        assert engine.baseline == before

    def test_bad_vector_does_not_mutate_smoother(self):
        engine = calibrated_engine()
        with pytest.raises(InvalidInputError):
            engine.analyze(make_face(), ["happy"])
        assert len(engine.smoother) == 0

    def test_bad_landmarks_with_vector_does_not_push(self):
        engine = calibrated_engine()
        with pytest.raises(InvalidLandmarksError):
            engine.analyze(np.zeros((5, 3)), {"happy": 1.0})
        assert len(engine.smoother) == 0

    def test_process_frame_reports_skip(self, caplog):
        engine = ExpressionEngine()
        with caplog.at_level(logging.WARNING, logger="expression_analysis.inference"):
            metrics, info = engine.process_frame(np.zeros((10, 3)))

        assert metrics is None
        assert info['skipped'] is True
        assert 'error' in info
        assert engine.baseline.sample_count == 0
        assert "Skipping frame" in caplog.text

    def test_overflowing_geometry_is_skipped(self):
        engine = calibrated_engine()
        before = engine.baseline
        face = make_face()
        face[78, 0], face[308, 0] = -1e308, 1e308
        face[13, 1], face[14, 1] = -1e308, 1e308

        metrics, info = engine.process_frame(face, {"happy": 0.9})

        assert metrics is None
        assert info['skipped'] is True
        assert engine.baseline == before
        assert len(engine.smoother) == 0

    def test_number_too_large_for_float_is_skipped(self):
        engine = ExpressionEngine()
        rows = make_face().tolist()
        rows[13] = [10 ** 400, 0, 0]

        metrics, info = engine.process_frame(rows)
        assert metrics is None and info['skipped']

        metrics, info = engine.process_frame(make_face(), {"happy": 10 ** 400})
        assert metrics is None and info['skipped']

        assert engine.baseline.sample_count == 0
        assert engine.get_performance_stats()['skipped_count'] == 2

    @settings(max_examples=50)
    @given(pattern=st.lists(st.booleans(), min_size=1, max_size=60))
    def test_mixed_stream_never_raises(self, pattern):
        engine = ExpressionEngine()
        valid = 0
        for ok in pattern:
            frame = make_face() if ok else np.zeros((3, 3))
            metrics, info = engine.process_frame(frame)
            if ok:
                valid += 1
                assert metrics is not None
            else:
                assert metrics is None and info['skipped']
        assert engine.baseline.sample_count == min(valid, 30)
        assert engine.get_performance_stats()['skipped_count'] == len(pattern) - valid


class TestProcessFrameInfo:

    def test_calibration_info(self):
        engine = ExpressionEngine(EngineConfig(calibration_samples=2))

        _, info = engine.process_frame(make_face())
        assert info['calibrating'] and not info['calibrated']
        assert info['calibration_progress'] == pytest.approx(0.5)

        _, info = engine.process_frame(make_face())
        assert info['calibrating'] and info['calibrated']

        _, info = engine.process_frame(make_face(), {"happy": 0.9})
        assert not info['calibrating']
        assert info['used_expressions'] is True
        assert info['smile_band'] == "broad"
        assert info['latency_ms'] >= 0.0

    def test_no_vector_no_band(self):
        engine = calibrated_engine()
        _, info = engine.process_frame(make_face())
        assert info['used_expressions'] is False
        assert info['smile_band'] is None

    def test_performance_stats(self):
        engine = ExpressionEngine()
        assert engine.get_performance_stats()['frame_count'] == 0
        for _ in range(5):
            engine.process_frame(make_face())
        stats = engine.get_performance_stats()
        assert stats['frame_count'] == 5
        assert stats['max_ms'] >= stats['mean_ms'] >= 0.0

    def test_performance_logging_disabled(self):
        engine = ExpressionEngine(EngineConfig(log_performance=False))
        engine.process_frame(make_face())
        assert engine.get_performance_stats()['frame_count'] == 0


class TestSessionIsolation:
    """
    **Property: Per-session state**

    Engines share no state; each owns its baseline and smoothing window.
    """

    def test_engines_independent(self):
        a = calibrated_engine(mouth_height=0.02)
        b = calibrated_engine(mouth_height=0.04)

        a.analyze(make_face(), {"happy": 1.0})
        assert len(a.smoother) == 1
        assert len(b.smoother) == 0

        metrics_a = a.analyze(make_face(mouth_height=0.04))
        metrics_b = b.analyze(make_face(mouth_height=0.04))
        assert metrics_a.mouth_openness == pytest.approx(2.0)
        assert metrics_b.mouth_openness == pytest.approx(1.0)


class TestEngineConfig:

    @pytest.mark.parametrize("kwargs", [
        {"window_size": 0},
        {"calibration_samples": 0},
        {"openness_max": 0.0},
        {"epsilon": -1.0},
    ])
    def test_invalid_config(self, kwargs):
        with pytest.raises(ValueError):
            EngineConfig(**kwargs)

    def test_defaults(self):
        config = EngineConfig()
        assert config.window_size == 5
        assert config.calibration_samples == 30
        assert config.openness_max == 2.0
        assert config.smile.minimal == 0.40
