"""头部姿态分析模块，计算头部欧拉角、帧间头部运动量和注视稳定度"""

import math
from typing import Optional, Sequence, Tuple

import numpy as np

from models.data_models import FaceQuality, FaceSample


class HeadPoseAnalyzer:
    """从面部变换矩阵提取欧拉角，评估头部运动和人脸质量"""

    def __init__(
        self,
        center_tolerance: float = 0.2,
        angle_tolerance: float = 0.5,
    ):
        """
        Args:
            center_tolerance: 鼻尖偏离画面中心的最大归一化距离
            angle_tolerance: pitch/yaw/roll 允许的最大绝对值（弧度）
        """
        self.center_tolerance = center_tolerance
        self.angle_tolerance = angle_tolerance

    @staticmethod
    def rotation_matrix_to_euler(matrix: np.ndarray) -> Tuple[float, float, float]:
        """
        从旋转矩阵（或 4x4 变换矩阵左上角）提取欧拉角 (pitch, yaw, roll)，单位为弧度。

        使用 ZYX 顺序分解。
        """
        rotation_matrix = np.asarray(matrix, dtype=np.float64)[:3, :3]
        sy = math.sqrt(rotation_matrix[0, 0] ** 2 + rotation_matrix[1, 0] ** 2)

        if sy > 1e-6:
            pitch = math.atan2(rotation_matrix[2, 1], rotation_matrix[2, 2])
            yaw = math.atan2(-rotation_matrix[2, 0], sy)
            roll = math.atan2(rotation_matrix[1, 0], rotation_matrix[0, 0])
        else:
            pitch = math.atan2(-rotation_matrix[1, 2], rotation_matrix[1, 1])
            yaw = math.atan2(-rotation_matrix[2, 0], sy)
            roll = 0.0

        return pitch, yaw, roll

    @staticmethod
    def head_movement(samples: Sequence[FaceSample]) -> float:
        """
        平均帧间头部旋转变化量。

        相邻样本 (pitch, yaw, roll) 的欧氏距离取平均，少于 2 个样本时返回 0.0
        """
        if len(samples) < 2:
            return 0.0
        rotations = np.array([s.rotation for s in samples], dtype=np.float64)
        deltas = np.linalg.norm(np.diff(rotations, axis=0), axis=1)
        return float(deltas.mean())

    @staticmethod
    def gaze_stability(samples: Sequence[FaceSample]) -> float:
        """
        注视稳定度，范围 [0, 1]。

        公式: clamp(1 - 2 * mean(|Δpitch| + |Δyaw|), 0, 1)，少于 2 个样本时为 0.5
        """
        if len(samples) < 2:
            return 0.5

        total_delta = 0.0
        for prev, curr in zip(samples, samples[1:]):
            total_delta += abs(curr.pitch - prev.pitch) + abs(curr.yaw - prev.yaw)
        avg_delta = total_delta / (len(samples) - 1)

        return min(max(1.0 - avg_delta * 2.0, 0.0), 1.0)

    def assess_quality(
        self,
        nose_position: Optional[Tuple[float, float]],
        rotation: Tuple[float, float, float],
    ) -> FaceQuality:
        """
        评估人脸质量。

        Args:
            nose_position: 鼻尖的归一化图像坐标 (x, y)，未检测到人脸时为 None
            rotation: (pitch, yaw, roll)，弧度

        Returns:
            居中且正对摄像头为 GOOD，满足其一为 FAIR，都不满足为 POOR
        """
        if nose_position is None:
            return FaceQuality.UNKNOWN

        x, y = nose_position
        is_centered = (
            abs(x - 0.5) < self.center_tolerance
            and abs(y - 0.5) < self.center_tolerance
        )
        is_facing_camera = all(abs(angle) < self.angle_tolerance for angle in rotation)

        if is_centered and is_facing_camera:
            return FaceQuality.GOOD
        if is_centered or is_facing_camera:
            return FaceQuality.FAIR
        return FaceQuality.POOR
