"""BaselineBuilder 单元测试"""

import math
from datetime import datetime

import pytest

from calibration.baseline_builder import (
    DEFAULT_BLINK_RATE_MEAN,
    DEFAULT_GAZE_STABILITY_MEAN,
    DEFAULT_RESPONSE_DURATION_MEAN,
    BaselineBuilder,
    build_baseline,
    compute_stats,
)
from conftest import make_sample
from models.data_models import (
    CalibrationCategory,
    CalibrationQuestion,
    QuestionResponse,
    SpokenAnswer,
)


def _response(answer=SpokenAnswer.YES, duration=2.0, samples=()):
    question = CalibrationQuestion("Can you see this screen?", answer, CalibrationCategory.ENVIRONMENT)
    return QuestionResponse(
        question=question,
        spoken_answer=answer,
        face_samples=tuple(samples),
        response_duration=duration,
    )


class TestComputeStats:
    """测试 compute_stats() 函数"""

    def test_basic(self):
        values = [1.0, 2.0, 3.0, 4.0, 5.0]
        mean, std = compute_stats(values)
        assert mean == pytest.approx(3.0)
        assert std == pytest.approx(math.sqrt(2.0))

    def test_empty_uses_default_mean(self):
        assert compute_stats([], default_mean=2.0) == (2.0, 0.0)

    def test_single_value_has_zero_std(self):
        assert compute_stats([0.7]) == (pytest.approx(0.7), 0.0)


class TestBuildBaseline:
    """测试 build_baseline() 方法"""

    def test_empty_responses_use_defaults(self):
        baseline = build_baseline([])
        assert baseline.blink_rate_mean == DEFAULT_BLINK_RATE_MEAN
        assert baseline.gaze_stability_mean == DEFAULT_GAZE_STABILITY_MEAN
        assert baseline.response_duration_mean == DEFAULT_RESPONSE_DURATION_MEAN
        assert baseline.blink_rate_std_dev == 0.0
        assert baseline.gaze_stability_std_dev == 0.0
        assert baseline.response_duration_std_dev == 0.0
        assert baseline.blendshape_baselines == {}

    def test_duration_statistics(self):
        baseline = build_baseline([_response(duration=1.0), _response(duration=3.0)])
        assert baseline.response_duration_mean == pytest.approx(2.0)
        assert baseline.response_duration_std_dev == pytest.approx(1.0)

    def test_blink_rate_statistics(self):
        """一条回答 1 次/秒，另一条 0 次/秒"""
        blinking = [
            make_sample(0.0),
            make_sample(0.5, eyeBlinkLeft=1.0, eyeBlinkRight=1.0),
            make_sample(1.0),
        ]
        still = [make_sample(0.0), make_sample(1.0)]
        baseline = build_baseline([_response(samples=blinking), _response(samples=still)])
        assert baseline.blink_rate_mean == pytest.approx(0.5)
        assert baseline.blink_rate_std_dev == pytest.approx(0.5)

    def test_response_without_samples_uses_neutral_gaze(self):
        baseline = build_baseline([_response(samples=())])
        assert baseline.gaze_stability_mean == pytest.approx(0.5)
        assert baseline.blink_rate_mean == 0.0

    def test_blendshape_stats_pooled_across_responses(self):
        first = [make_sample(0.0, browInnerUp=0.2), make_sample(0.1, browInnerUp=0.4)]
        second = [make_sample(0.0, browInnerUp=0.3, jawOpen=0.6)]
        baseline = build_baseline([_response(samples=first), _response(samples=second)])

        brow = baseline.blendshape_baselines["browInnerUp"]
        assert brow.mean == pytest.approx(0.3)
        assert brow.std_dev == pytest.approx(math.sqrt(0.02 / 3))
        assert brow.max == pytest.approx(0.4)
        assert baseline.blendshape_baselines["jawOpen"].mean == pytest.approx(0.6)

    def test_untracked_blendshapes_are_omitted(self):
        samples = [make_sample(0.0, eyeBlinkLeft=0.9, tongueOut=0.5)]
        baseline = build_baseline([_response(samples=samples)])
        assert baseline.blendshape_baselines == {}


class TestFaceConfidence:
    """测试 face_confidence() 方法"""

    def test_half_the_expected_frames(self):
        builder = BaselineBuilder(expected_frame_rate=30.0)
        samples = [make_sample(i / 30.0) for i in range(15)]
        assert builder.face_confidence([_response(duration=1.0, samples=samples)]) == pytest.approx(0.5)

    def test_capped_at_one(self):
        builder = BaselineBuilder(expected_frame_rate=10.0)
        samples = [make_sample(i / 30.0) for i in range(30)]
        assert builder.face_confidence([_response(duration=1.0, samples=samples)]) == 1.0

    def test_zero_duration(self):
        builder = BaselineBuilder()
        assert builder.face_confidence([_response(duration=0.0, samples=[make_sample(0.0)])]) == 0.0

    def test_no_responses(self):
        assert BaselineBuilder().face_confidence([]) == 0.0


class TestBuildCalibrationData:
    """测试 build_calibration_data() 方法"""

    def test_splits_by_spoken_answer(self):
        responses = [
            _response(SpokenAnswer.YES, duration=1.0),
            _response(SpokenAnswer.YES, duration=3.0),
            _response(SpokenAnswer.NO, duration=4.0),
        ]
        calibrated_at = datetime(2024, 5, 1, 12, 0)
        data = BaselineBuilder().build_calibration_data("alex", responses, calibrated_at=calibrated_at)

        assert data.player_id == "alex"
        assert data.calibrated_at == calibrated_at
        assert data.sample_count == 3
        assert data.yes_baseline.response_duration_mean == pytest.approx(2.0)
        assert data.no_baseline.response_duration_mean == pytest.approx(4.0)
        assert data.baseline_for(SpokenAnswer.NO) is data.no_baseline

    def test_missing_polarity_uses_default_baseline(self):
        data = BaselineBuilder().build_calibration_data("alex", [_response(SpokenAnswer.YES, duration=1.0)])
        assert data.no_baseline.response_duration_mean == DEFAULT_RESPONSE_DURATION_MEAN
        assert data.no_baseline.response_duration_std_dev == 0.0
