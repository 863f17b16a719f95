"""单人游戏流程模块：逐题采集回答并与玩家基线比较"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, List, Optional, Sequence

from capture.response_orchestrator import (
    DEFAULT_ANSWER_TIMEOUT,
    DEFAULT_COUNTDOWN_SECONDS,
    CaptureStateError,
    PhaseChange,
    ResponseCaptureOrchestrator,
    thread_timer,
)
from evaluators.session_aggregator import SessionAggregator
from evaluators.verdict_evaluator import VerdictEvaluator
from models.data_models import (
    FaceQuality,
    GameQuestion,
    Player,
    QuestionResult,
    QuestionVerdict,
    Resolved,
    SessionVerdict,
)

logger = logging.getLogger(__name__)


class VerdictMode(Enum):
    AFTER_EACH = "after_each"  # 每题后展示判定，由调用方推进
    AT_END = "at_end"          # 回答后自动进入下一题


class GameSession:
    """一名玩家的一局游戏"""

    def __init__(
        self,
        player: Player,
        questions: Sequence[GameQuestion],
        face_source,
        speech_source,
        verdict_mode: VerdictMode = VerdictMode.AFTER_EACH,
        evaluator: Optional[VerdictEvaluator] = None,
        aggregator: Optional[SessionAggregator] = None,
        answer_timeout: float = DEFAULT_ANSWER_TIMEOUT,
        countdown_seconds: float = DEFAULT_COUNTDOWN_SECONDS,
        scheduler: Callable = thread_timer,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.player = player
        self.questions: List[GameQuestion] = list(questions)
        self.verdict_mode = verdict_mode
        self.evaluator = evaluator or VerdictEvaluator()
        self.aggregator = aggregator or SessionAggregator()
        self.last_verdict: Optional[QuestionVerdict] = None

        self._lock = threading.Lock()
        self._results: List[QuestionResult] = []
        self._current_index = 0
        self._answered_current = False

        self.orchestrator = ResponseCaptureOrchestrator(
            face_source,
            speech_source,
            answer_timeout=answer_timeout,
            countdown_seconds=countdown_seconds,
            verify_expected_answer=False,
            required_quality=FaceQuality.GOOD,
            scheduler=scheduler,
            clock=clock,
        )
        self.orchestrator.add_listener(self._on_phase_change)

        if not player.is_calibrated:
            logger.warning("玩家 %s 尚未校准，所有判定将为中性结果", player.name)

    @property
    def current_question(self) -> Optional[GameQuestion]:
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
    def results(self) -> List[QuestionResult]:
        with self._lock:
            return list(self._results)

    @property
    def overall_verdict(self) -> SessionVerdict:
        return self.aggregator.classify([r.verdict for r in self.results])

    def start_question(self) -> None:
        question = self.current_question
        if question is None:
            raise CaptureStateError("本局问题已全部完成")
        with self._lock:
            self._answered_current = False
        self.orchestrator.begin_capture(question)

    def start_answering(self) -> bool:
        return self.orchestrator.start_answering()

    def retry_current_question(self) -> None:
        self.orchestrator.retry()

    def advance_to_next_question(self) -> None:
        """AFTER_EACH 模式下查看判定后进入下一题"""
        with self._lock:
            if not self._answered_current:
                raise CaptureStateError("当前问题尚未回答")
            self._answered_current = False
            self._current_index += 1

    def _on_phase_change(self, change: PhaseChange) -> None:
        if not isinstance(change.outcome, Resolved):
            return

        response = change.outcome.response
        verdict = self.evaluator.evaluate(response, self.player.calibration_data)
        result = QuestionResult(
            question=response.question,
            spoken_answer=response.spoken_answer,
            response_duration=response.response_duration,
            verdict=verdict,
        )
        with self._lock:
            self._results.append(result)
            self.last_verdict = verdict
            if self.verdict_mode is VerdictMode.AT_END:
                self._current_index += 1
            else:
                self._answered_current = True

        logger.info(
            "%s 回答 %s，判定: %s (%.2f)",
            self.player.name,
            response.spoken_answer.value,
            "可疑" if verdict.is_suspicious else "可信",
            verdict.confidence,
        )

    def cleanup(self) -> None:
        self.orchestrator.cancel()
