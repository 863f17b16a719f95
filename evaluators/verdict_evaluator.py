"""单题判定模块，将游戏回答与玩家基线比较，输出可疑度和触发原因"""

from typing import List, Optional

from detectors.eye_analyzer import EyeAnalyzer
from detectors.head_pose_analyzer import HeadPoseAnalyzer
from models.data_models import (
    CalibrationData,
    FacialBaseline,
    QuestionResponse,
    QuestionVerdict,
)

# 各信号权重
BLINK_WEIGHT = 0.30
DURATION_WEIGHT = 0.25
HEAD_MOVEMENT_WEIGHT = 0.20
FACIAL_TENSION_WEIGHT = 0.15
LONG_PAUSE_WEIGHT = 0.10

SUSPICION_THRESHOLD = 0.5

NEUTRAL_CONFIDENCE = 0.5

FACTOR_NO_CALIBRATION = "no calibration"
FACTOR_NORMAL_PATTERN = "normal pattern"
FACTOR_MORE_BLINKING = "more blinking"
FACTOR_LESS_BLINKING = "less blinking"
FACTOR_LONGER_RESPONSE = "longer response"
FACTOR_FASTER_RESPONSE = "faster response"
FACTOR_HEAD_MOVEMENT = "head movement"
FACTOR_FACIAL_TENSION = "facial tension"
FACTOR_LONG_PAUSE = "long pause"


class VerdictEvaluator:
    """汇总五个偏离信号，输出单题可疑度、是否可疑和触发原因。"""

    def __init__(
        self,
        head_movement_threshold: float = 0.3,
        brow_tension_threshold: float = 0.5,
        eye_analyzer: Optional[EyeAnalyzer] = None,
    ):
        """
        Args:
            head_movement_threshold: 平均帧间头部旋转变化阈值（弧度）
            brow_tension_threshold: browInnerUp 平均强度阈值
            eye_analyzer: 眨眼统计，可配置眨眼阈值
        """
        self.head_movement_threshold = head_movement_threshold
        self.brow_tension_threshold = brow_tension_threshold
        self.eye_analyzer = eye_analyzer or EyeAnalyzer()

    def evaluate(
        self,
        response: QuestionResponse,
        calibration: Optional[CalibrationData],
    ) -> QuestionVerdict:
        """
        判定一道游戏题的回答。

        Args:
            response: 游戏回答
            calibration: 玩家校准数据，未校准时为 None

        Returns:
            未校准时返回中性结果（0.5，不可疑），否则按回答极性选择基线打分
        """
        if calibration is None:
            return QuestionVerdict(
                confidence=NEUTRAL_CONFIDENCE,
                is_suspicious=False,
                factors=[FACTOR_NO_CALIBRATION],
            )
        baseline = calibration.baseline_for(response.spoken_answer)
        return self.score(response, baseline)

    def score(self, response: QuestionResponse, baseline: FacialBaseline) -> QuestionVerdict:
        """按固定权重累加触发的信号，每个信号要么完全触发要么不触发"""
        samples = response.face_samples
        duration = response.response_duration
        suspicion_score = 0.0
        factors: List[str] = []

        # 1. 眨眼频率
        blink_rate = self.eye_analyzer.blink_rate(samples)
        blink_delta = abs(blink_rate - baseline.blink_rate_mean)
        if blink_delta > baseline.blink_rate_std_dev * 2:
            suspicion_score += BLINK_WEIGHT
            if blink_rate > baseline.blink_rate_mean:
                factors.append(FACTOR_MORE_BLINKING)
            else:
                factors.append(FACTOR_LESS_BLINKING)

        # 2. 回答时长
        duration_delta = abs(duration - baseline.response_duration_mean)
        if duration_delta > baseline.response_duration_std_dev * 2:
            suspicion_score += DURATION_WEIGHT
            if duration > baseline.response_duration_mean:
                factors.append(FACTOR_LONGER_RESPONSE)
            else:
                factors.append(FACTOR_FASTER_RESPONSE)

        # 3. 头部运动
        if HeadPoseAnalyzer.head_movement(samples) > self.head_movement_threshold:
            suspicion_score += HEAD_MOVEMENT_WEIGHT
            factors.append(FACTOR_HEAD_MOVEMENT)

        # 4. 眉头紧张
        if self.brow_tension(response) > self.brow_tension_threshold:
            suspicion_score += FACIAL_TENSION_WEIGHT
            factors.append(FACTOR_FACIAL_TENSION)

        # 5. 过长停顿
        long_pause_limit = baseline.response_duration_mean + baseline.response_duration_std_dev * 3
        if duration > long_pause_limit:
            suspicion_score += LONG_PAUSE_WEIGHT
            factors.append(FACTOR_LONG_PAUSE)

        confidence = min(max(suspicion_score, 0.0), 1.0)

        if not factors:
            factors.append(FACTOR_NORMAL_PATTERN)

        return QuestionVerdict(
            confidence=confidence,
            is_suspicious=confidence > SUSPICION_THRESHOLD,
            factors=factors,
        )

    @staticmethod
    def brow_tension(response: QuestionResponse) -> float:
        """browInnerUp 平均强度，无样本时为 0.0"""
        samples = response.face_samples
        if not samples:
            return 0.0
        return sum(s.feature("browInnerUp") for s in samples) / len(samples)
