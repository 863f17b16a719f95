"""人脸特征检测模块，基于 MediaPipe FaceLandmarker（blendshape + 面部变换矩阵）"""

import os
from typing import Optional

import cv2
import mediapipe as mp
import numpy as np

from detectors.head_pose_analyzer import HeadPoseAnalyzer
from models.data_models import FaceFrame

# 鼻尖关键点索引
NOSE_TIP_INDEX = 1


class FaceDetector:
    """使用 MediaPipe FaceLandmarker 提取 blendshape 强度和头部旋转"""

    def __init__(
        self,
        model_path: str,
        min_detection_confidence: float = 0.5,
        head_pose_analyzer: Optional[HeadPoseAnalyzer] = None,
    ):
        """
        加载 FaceLandmarker 模型。

        Args:
            model_path: face_landmarker.task 模型文件路径
            min_detection_confidence: 最小人脸检测置信度
            head_pose_analyzer: 用于欧拉角提取和质量评估

        Raises:
            FileNotFoundError: 模型文件不存在时抛出
        """
        if not os.path.exists(model_path):
            raise FileNotFoundError(f"人脸模型文件不存在: {model_path}")

        self._head_pose = head_pose_analyzer or HeadPoseAnalyzer()

        vision = mp.tasks.vision
        options = vision.FaceLandmarkerOptions(
            base_options=mp.tasks.BaseOptions(model_asset_path=model_path),
            running_mode=vision.RunningMode.VIDEO,
            num_faces=1,
            min_face_detection_confidence=min_detection_confidence,
            min_tracking_confidence=0.5,
            output_face_blendshapes=True,
            output_facial_transformation_matrixes=True,
        )
        self._landmarker = vision.FaceLandmarker.create_from_options(options)

    def detect(self, frame: np.ndarray, timestamp_ms: int) -> Optional[FaceFrame]:
        """
        检测单帧图像中的人脸特征。

        Args:
            frame: BGR 格式的 OpenCV 图像帧
            timestamp_ms: 帧时间戳（毫秒，需单调递增）

        Returns:
            FaceFrame（blendshape 强度、欧拉角、人脸质量）；未检测到人脸时返回 None
        """
        # BGR -> RGB
        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb_frame)

        result = self._landmarker.detect_for_video(image, timestamp_ms)

        if not result.face_landmarks:
            return None

        features = {}
        if result.face_blendshapes:
            features = {
                category.category_name: float(category.score)
                for category in result.face_blendshapes[0]
            }

        rotation = (0.0, 0.0, 0.0)
        if result.facial_transformation_matrixes:
            rotation = self._head_pose.rotation_matrix_to_euler(
                np.asarray(result.facial_transformation_matrixes[0])
            )

        nose = result.face_landmarks[0][NOSE_TIP_INDEX]
        quality = self._head_pose.assess_quality((nose.x, nose.y), rotation)

        return FaceFrame(features=features, rotation=rotation, quality=quality)

    def close(self):
        """释放 MediaPipe 资源"""
        self._landmarker.close()
