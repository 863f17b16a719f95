"""面部样本录制模块：线程安全的样本缓冲区和摄像头采集线程"""

import logging
import threading
import time
from typing import Callable, List, Optional

import cv2

from detectors.face_detector import FaceDetector
from models.data_models import FaceFrame, FaceQuality, FaceSample

logger = logging.getLogger(__name__)

# 读帧失败后的重试间隔（秒）
FRAME_RETRY_DELAY = 0.01
# 检测出错后的退避时间（秒）
DETECTION_ERROR_BACKOFF = 0.1


class FaceSampleRecorder:
    """
    面部样本缓冲区。

    帧由采集线程推入，start()/stop() 由编排器调用，
    缓冲区的追加和清空都在同一把锁内完成。
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._recording = False
        self._samples: List[FaceSample] = []
        self._start_time: Optional[float] = None
        self._quality = FaceQuality.UNKNOWN

    @property
    def is_recording(self) -> bool:
        with self._lock:
            return self._recording

    @property
    def quality(self) -> FaceQuality:
        with self._lock:
            return self._quality

    def start(self) -> None:
        """开始录制，清空旧样本并记录起始时间"""
        with self._lock:
            self._recording = True
            self._samples = []
            self._start_time = self._clock()
        logger.info("开始录制面部数据")

    def stop(self) -> List[FaceSample]:
        """
        停止录制并取出已采集的样本。

        未在录制时返回空列表，可重复调用。
        """
        with self._lock:
            if not self._recording:
                return []
            samples = self._samples
            self._samples = []
            self._recording = False
            self._start_time = None
        logger.info("停止录制，共采集 %d 个样本", len(samples))
        return samples

    def push_frame(self, frame: Optional[FaceFrame]) -> None:
        """
        推入一帧检测结果。

        Args:
            frame: 检测器输出，未检测到人脸时为 None
        """
        with self._lock:
            if frame is None:
                self._quality = FaceQuality.UNKNOWN
                return

            self._quality = frame.quality
            if not self._recording:
                return

            timestamp = max(self._clock() - self._start_time, 0.0)
            if self._samples:
                timestamp = max(timestamp, self._samples[-1].timestamp)

            self._samples.append(FaceSample(
                timestamp=timestamp,
                features=dict(frame.features),
                rotation=tuple(frame.rotation),
            ))


class CameraFaceSource:
    """摄像头面部样本源：后台线程读取视频帧，检测后推入录制缓冲区"""

    def __init__(
        self,
        detector: FaceDetector,
        camera_index: int = 0,
        recorder: Optional[FaceSampleRecorder] = None,
    ):
        self._detector = detector
        self._camera_index = camera_index
        self.recorder = recorder or FaceSampleRecorder()
        self._cap = None
        self._running = False
        self._thread: Optional[threading.Thread] = None

    def open(self) -> bool:
        """打开摄像头并启动采集线程，失败返回 False"""
        if self._running:
            return True

        self._cap = cv2.VideoCapture(self._camera_index)
        if not self._cap.isOpened():
            logger.error("无法打开摄像头 %s", self._camera_index)
            self._cap = None
            return False

        self._running = True
        self._thread = threading.Thread(target=self._capture_loop, daemon=True)
        self._thread.start()
        logger.info("摄像头已开启")
        return True

    def close(self) -> None:
        """停止采集线程、释放摄像头并丢弃未取出的样本"""
        self._running = False
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None
        if self._cap is not None and self._cap.isOpened():
            self._cap.release()
        self._cap = None
        self.recorder.stop()

    def _capture_loop(self) -> None:
        started_at = time.monotonic()
        last_timestamp_ms = -1
        while self._running:
            try:
                ret, frame = self._cap.read()
                if not ret:
                    time.sleep(FRAME_RETRY_DELAY)
                    continue

                # FaceLandmarker 要求时间戳严格递增
                timestamp_ms = int((time.monotonic() - started_at) * 1000)
                timestamp_ms = max(timestamp_ms, last_timestamp_ms + 1)
                last_timestamp_ms = timestamp_ms

                self.recorder.push_frame(self._detector.detect(frame, timestamp_ms))
            except Exception:
                logger.exception("人脸检测出错")
                # 检测失败时人脸视为丢失，避免质量检查继续放行
                self.recorder.push_frame(None)
                time.sleep(DETECTION_ERROR_BACKOFF)

    # 面部样本源接口

    @property
    def is_recording(self) -> bool:
        return self.recorder.is_recording

    @property
    def quality(self) -> FaceQuality:
        return self.recorder.quality

    def start(self) -> None:
        self.recorder.start()

    def stop(self) -> List[FaceSample]:
        return self.recorder.stop()
