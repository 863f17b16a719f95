"""基线构建模块，从校准阶段的真实回答中统计玩家的面部行为基线"""

import logging
import math
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from detectors.eye_analyzer import EyeAnalyzer
from detectors.head_pose_analyzer import HeadPoseAnalyzer
from models.data_models import (
    BlendshapeStats,
    CalibrationData,
    FacialBaseline,
    QuestionResponse,
    SpokenAnswer,
)

logger = logging.getLogger(__name__)

# 参与基线统计的面部动作
TRACKED_BLENDSHAPES = [
    "browInnerUp",
    "browOuterUpLeft",
    "browOuterUpRight",
    "eyeSquintLeft",
    "eyeSquintRight",
    "mouthSmileLeft",
    "mouthSmileRight",
    "jawOpen",
    "cheekPuff",
    "noseSneerLeft",
    "noseSneerRight",
]

# 样本不足时的默认值
DEFAULT_BLINK_RATE_MEAN = 0.5
DEFAULT_GAZE_STABILITY_MEAN = 0.5
DEFAULT_RESPONSE_DURATION_MEAN = 2.0

DEFAULT_EXPECTED_FRAME_RATE = 30.0


def compute_stats(values: Sequence[float], default_mean: float = 0.0) -> Tuple[float, float]:
    """
    计算一组数值的均值和总体标准差。

    Args:
        values: 浮点数列表
        default_mean: 列表为空时返回的均值

    Returns:
        (mean, std)，列表为空时为 (default_mean, 0.0)
    """
    n = len(values)
    if n == 0:
        return default_mean, 0.0
    mean = sum(values) / n
    std = math.sqrt(sum((x - mean) ** 2 for x in values) / n)
    return mean, std


class BaselineBuilder:
    """将同一回答极性的校准回答聚合为 FacialBaseline"""

    def __init__(
        self,
        eye_analyzer: Optional[EyeAnalyzer] = None,
        head_pose_analyzer: Optional[HeadPoseAnalyzer] = None,
        expected_frame_rate: float = DEFAULT_EXPECTED_FRAME_RATE,
    ):
        self.eye_analyzer = eye_analyzer or EyeAnalyzer()
        self.head_pose_analyzer = head_pose_analyzer or HeadPoseAnalyzer()
        self.expected_frame_rate = expected_frame_rate

    def build_baseline(self, responses: Sequence[QuestionResponse]) -> FacialBaseline:
        """
        构建单一极性的基线。

        Args:
            responses: 口头回答极性相同的校准回答

        Returns:
            FacialBaseline；空列表时使用默认均值且标准差为 0
        """
        blink_rates: List[float] = []
        gaze_stabilities: List[float] = []
        durations: List[float] = []

        for response in responses:
            samples = response.face_samples
            blink_rates.append(self.eye_analyzer.blink_rate(samples))
            gaze_stabilities.append(self.head_pose_analyzer.gaze_stability(samples))
            durations.append(response.response_duration)

        blink_mean, blink_std = compute_stats(blink_rates, DEFAULT_BLINK_RATE_MEAN)
        gaze_mean, gaze_std = compute_stats(gaze_stabilities, DEFAULT_GAZE_STABILITY_MEAN)
        duration_mean, duration_std = compute_stats(durations, DEFAULT_RESPONSE_DURATION_MEAN)

        return FacialBaseline(
            blink_rate_mean=blink_mean,
            blink_rate_std_dev=blink_std,
            gaze_stability_mean=gaze_mean,
            gaze_stability_std_dev=gaze_std,
            response_duration_mean=duration_mean,
            response_duration_std_dev=duration_std,
            blendshape_baselines=self.blendshape_baselines(responses),
        )

    @staticmethod
    def blendshape_baselines(responses: Sequence[QuestionResponse]) -> Dict[str, BlendshapeStats]:
        """汇总所有样本，统计各跟踪动作的 mean/std/max；没有样本包含的动作不输出"""
        pooled: Dict[str, List[float]] = {name: [] for name in TRACKED_BLENDSHAPES}
        for response in responses:
            for sample in response.face_samples:
                for name in TRACKED_BLENDSHAPES:
                    if name in sample.features:
                        pooled[name].append(sample.features[name])

        result: Dict[str, BlendshapeStats] = {}
        for name, values in pooled.items():
            if not values:
                continue
            arr = np.array(values, dtype=np.float64)
            result[name] = BlendshapeStats(
                mean=float(arr.mean()),
                std_dev=float(arr.std()),
                max=float(arr.max()),
            )
        return result

    def face_confidence(self, responses: Sequence[QuestionResponse]) -> float:
        """
        实际采集帧数与期望帧数之比的平均值，范围 [0, 1]。

        期望帧数 = 回答时长 * 期望帧率；无回答时返回 0.0
        """
        ratios = []
        for response in responses:
            expected = response.response_duration * self.expected_frame_rate
            if expected <= 0.0:
                ratios.append(0.0)
                continue
            ratios.append(min(len(response.face_samples) / expected, 1.0))
        if not ratios:
            return 0.0
        return sum(ratios) / len(ratios)

    def build_calibration_data(
        self,
        player_id: str,
        responses: Sequence[QuestionResponse],
        calibrated_at: Optional[datetime] = None,
    ) -> CalibrationData:
        """
        按口头回答拆分校准回答，分别构建"是"和"否"两条基线。

        Args:
            player_id: 玩家 ID
            responses: 全部通过校验的校准回答
            calibrated_at: 校准时间，默认当前时间
        """
        yes_responses = [r for r in responses if r.spoken_answer is SpokenAnswer.YES]
        no_responses = [r for r in responses if r.spoken_answer is SpokenAnswer.NO]

        if not yes_responses or not no_responses:
            logger.warning(
                "校准样本不足: 是 %d 条, 否 %d 条，缺失的一侧使用默认基线",
                len(yes_responses),
                len(no_responses),
            )

        data = CalibrationData(
            player_id=player_id,
            calibrated_at=calibrated_at or datetime.now(),
            yes_baseline=self.build_baseline(yes_responses),
            no_baseline=self.build_baseline(no_responses),
            sample_count=len(responses),
            average_face_confidence=self.face_confidence(responses),
        )
        logger.info("校准完成: 共 %d 条回答, 人脸置信度 %.2f", data.sample_count, data.average_face_confidence)
        return data


def build_baseline(responses: Sequence[QuestionResponse]) -> FacialBaseline:
    """使用默认参数构建基线"""
    return BaselineBuilder().build_baseline(responses)
