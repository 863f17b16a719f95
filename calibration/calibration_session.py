"""校准流程模块：逐题采集真实回答，完成后生成玩家校准数据"""

import logging
import threading
import time
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from calibration.baseline_builder import BaselineBuilder
from calibration.calibration_store import CalibrationStore
from calibration.question_generator import generate_calibration_questions
from capture.response_orchestrator import (
    DEFAULT_ANSWER_TIMEOUT,
    DEFAULT_COUNTDOWN_SECONDS,
    CaptureStateError,
    PhaseChange,
    ResponseCaptureOrchestrator,
    thread_timer,
)
from models.data_models import (
    CalibrationData,
    CalibrationQuestion,
    FaceQuality,
    Player,
    QuestionResponse,
    Rejected,
    Resolved,
)

logger = logging.getLogger(__name__)


class CalibrationSession:
    """协调一名玩家的校准：回答错误的问题会被重播，不计入基线"""

    def __init__(
        self,
        player: Player,
        face_source,
        speech_source,
        questions: Optional[Sequence[CalibrationQuestion]] = None,
        answer_timeout: float = DEFAULT_ANSWER_TIMEOUT,
        countdown_seconds: float = DEFAULT_COUNTDOWN_SECONDS,
        baseline_builder: Optional[BaselineBuilder] = None,
        store: Optional[CalibrationStore] = None,
        scheduler: Callable = thread_timer,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.player = player
        if questions is None:
            questions = generate_calibration_questions(player)
        self.questions: List[CalibrationQuestion] = list(questions)
        self.baseline_builder = baseline_builder or BaselineBuilder()
        self.store = store
        self.last_rejection: Optional[Rejected] = None

        self._lock = threading.Lock()
        self._responses: List[QuestionResponse] = []
        self._current_index = 0

        self.orchestrator = ResponseCaptureOrchestrator(
            face_source,
            speech_source,
            answer_timeout=answer_timeout,
            countdown_seconds=countdown_seconds,
            verify_expected_answer=True,
            required_quality=FaceQuality.FAIR,
            scheduler=scheduler,
            clock=clock,
        )
        self.orchestrator.add_listener(self._on_phase_change)
        logger.info("开始为 %s 校准，共 %d 道题", player.name, len(self.questions))

    @property
    def current_question(self) -> Optional[CalibrationQuestion]:
        with self._lock:
            if self._current_index < len(self.questions):
                return self.questions[self._current_index]
            return None

    @property
    def progress(self) -> float:
        with self._lock:
            if not self.questions:
                return 0.0
            return self._current_index / len(self.questions)

    @property
    def is_complete(self) -> bool:
        with self._lock:
            return self._current_index >= len(self.questions)

    @property
    def responses(self) -> List[QuestionResponse]:
        with self._lock:
            return list(self._responses)

    def start_question(self) -> None:
        """开始当前问题的倒计时"""
        question = self.current_question
        if question is None:
            raise CaptureStateError("校准问题已全部完成")
        self.last_rejection = None
        self.orchestrator.begin_capture(question)

    def start_answering(self) -> bool:
        return self.orchestrator.start_answering()

    def retry_current_question(self) -> None:
        """超时、识别失败或回答错误后重播当前问题"""
        self.last_rejection = None
        self.orchestrator.retry()

    def _on_phase_change(self, change: PhaseChange) -> None:
        if isinstance(change.outcome, Resolved):
            with self._lock:
                self._responses.append(change.outcome.response)
                self._current_index += 1
        elif isinstance(change.outcome, Rejected):
            self.last_rejection = change.outcome

    def finish(self, calibrated_at: Optional[datetime] = None) -> CalibrationData:
        """
        生成校准数据并替换玩家原有的校准。

        回答记录在汇总后即被丢弃；配置了 store 时同时保存
        """
        with self._lock:
            responses = self._responses
            self._responses = []

        data = self.baseline_builder.build_calibration_data(
            self.player.id, responses, calibrated_at=calibrated_at
        )
        self.player.calibration_data = data
        self.player.last_calibrated_at = data.calibrated_at

        if self.store is not None:
            self.store.save(data)
        return data

    def cleanup(self) -> None:
        """离开校准流程时调用，可重复调用"""
        self.orchestrator.cancel()
