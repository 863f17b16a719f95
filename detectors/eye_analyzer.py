"""眼睛状态分析模块，负责从面部样本中统计眨眼次数和眨眼频率"""

from typing import Sequence

from models.data_models import FaceSample

BLINK_LEFT = "eyeBlinkLeft"
BLINK_RIGHT = "eyeBlinkRight"


class EyeAnalyzer:
    """按上升沿统计眨眼，输出眨眼次数和每秒眨眼频率"""

    def __init__(self, blink_threshold: float = 0.5):
        """初始化眨眼阈值"""
        self.blink_threshold = blink_threshold

    def blink_intensity(self, sample: FaceSample) -> float:
        """双眼闭合强度的平均值"""
        return (sample.feature(BLINK_LEFT) + sample.feature(BLINK_RIGHT)) / 2.0

    def count_blinks(self, samples: Sequence[FaceSample]) -> int:
        """
        统计眨眼次数。

        平均闭合强度从 <= 阈值 越过到 > 阈值 记为一次眨眼，
        持续闭眼期间不重复计数。

        Args:
            samples: 按时间排序的面部样本

        Returns:
            眨眼次数
        """
        blink_count = 0
        was_blinking = False

        for sample in samples:
            is_blinking = self.blink_intensity(sample) > self.blink_threshold
            if is_blinking and not was_blinking:
                blink_count += 1
            was_blinking = is_blinking

        return blink_count

    def blink_rate(self, samples: Sequence[FaceSample]) -> float:
        """
        计算眨眼频率（次/秒）。

        以最后一个样本的时间戳作为录制时长，时长为 0 或无样本时返回 0.0
        """
        if not samples:
            return 0.0
        duration = samples[-1].timestamp
        if duration <= 0.0:
            return 0.0
        return self.count_blinks(samples) / duration
