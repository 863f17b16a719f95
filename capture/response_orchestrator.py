"""回答采集编排模块：协调面部录制和语音识别，为每道题生成一次原子的回答记录"""

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from models.data_models import (
    CaptureOutcome,
    Failed,
    FaceQuality,
    Question,
    QuestionResponse,
    Rejected,
    Resolved,
    SpeechAnswer,
    SpeechResult,
    SpeechTimeout,
    SpokenAnswer,
    TimedOut,
)

logger = logging.getLogger(__name__)

DEFAULT_ANSWER_TIMEOUT = 10.0
DEFAULT_COUNTDOWN_SECONDS = 3.0


class CapturePhase(Enum):
    IDLE = "idle"
    COUNTDOWN = "countdown"
    READ_PROMPT = "read_prompt"
    RECORDING = "recording"
    RESOLVED = "resolved"
    TIMED_OUT = "timed_out"
    FAILED = "failed"
    REJECTED = "rejected"


RETRYABLE_PHASES = (CapturePhase.TIMED_OUT, CapturePhase.FAILED, CapturePhase.REJECTED)


@dataclass(frozen=True)
class PhaseChange:
    """阶段切换事件，发送给监听者（界面、音效、震动等）"""
    previous: CapturePhase
    current: CapturePhase
    question: Optional[Question]
    outcome: Optional[CaptureOutcome] = None


class CaptureStateError(RuntimeError):
    """在不允许的阶段调用了编排器操作"""


def thread_timer(delay: float, callback: Callable[[], None]) -> threading.Timer:
    """默认调度器：在后台线程中延迟执行回调，返回可 cancel() 的句柄"""
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class ResponseCaptureOrchestrator:
    """
    单题采集状态机。

    IDLE -> COUNTDOWN -> READ_PROMPT -> RECORDING -> {RESOLVED | TIMED_OUT | FAILED | REJECTED}

    面部帧和语音结果来自不同线程。每次开始录制、重试或取消都会递增代数（generation），
    回答、超时、错误三者中先到者胜出并再次递增代数，之后到达的旧回调全部被丢弃。
    """

    def __init__(
        self,
        face_source,
        speech_source,
        answer_timeout: float = DEFAULT_ANSWER_TIMEOUT,
        countdown_seconds: float = DEFAULT_COUNTDOWN_SECONDS,
        verify_expected_answer: bool = False,
        required_quality: FaceQuality = FaceQuality.FAIR,
        scheduler: Callable = thread_timer,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            face_source: 面部样本源，提供 start()/stop()/is_recording/quality
            speech_source: 语音回答源，提供 listen(timeout)/cancel()
            answer_timeout: 等待回答的超时秒数
            countdown_seconds: 倒计时秒数，之后进入读题阶段
            verify_expected_answer: 校准模式，回答与预期不符时拒绝
            required_quality: 开始录制所需的最低人脸质量
            scheduler: (delay, callback) -> 带 cancel() 的句柄
            clock: 单调时钟
        """
        self._face = face_source
        self._speech = speech_source
        self.answer_timeout = answer_timeout
        self.countdown_seconds = countdown_seconds
        self.verify_expected_answer = verify_expected_answer
        self.required_quality = required_quality
        self._scheduler = scheduler
        self._clock = clock

        self._lock = threading.RLock()
        self._notify_lock = threading.RLock()
        self._phase = CapturePhase.IDLE
        self._question: Optional[Question] = None
        self._generation = 0
        self._start_time: Optional[float] = None
        self._face_active = False
        self._listening = False
        self._countdown_handle = None
        self._timeout_handle = None
        self._last_outcome: Optional[CaptureOutcome] = None
        self._listeners: List[Callable[[PhaseChange], None]] = []
        self._pending: List[PhaseChange] = []

    @property
    def phase(self) -> CapturePhase:
        with self._lock:
            return self._phase

    @property
    def question(self) -> Optional[Question]:
        with self._lock:
            return self._question

    @property
    def last_outcome(self) -> Optional[CaptureOutcome]:
        with self._lock:
            return self._last_outcome

    def add_listener(self, listener: Callable[[PhaseChange], None]) -> None:
        with self._lock:
            self._listeners.append(listener)

    def is_face_ready(self) -> bool:
        return self._face.quality.at_least(self.required_quality)

    # --- 操作 ---

    def begin_capture(self, question: Question) -> None:
        """开始一道题：进入倒计时，倒计时结束后进入读题阶段"""
        with self._lock:
            if self._phase is CapturePhase.RECORDING:
                raise CaptureStateError("录制进行中，不能开始新的问题")
            self._begin_locked(question)
        self._flush()

    def _begin_locked(self, question: Question) -> None:
        """进入倒计时，调用方必须持有状态锁"""
        self._cleanup()
        self._generation += 1
        generation = self._generation
        self._question = question
        self._last_outcome = None
        self._set_phase(CapturePhase.COUNTDOWN)
        self._countdown_handle = self._scheduler(
            self.countdown_seconds,
            lambda: self._on_countdown_elapsed(generation),
        )

    def start_answering(self) -> bool:
        """
        玩家准备好回答：同时启动面部录制和语音监听。

        Returns:
            人脸质量不足时返回 False 并停留在读题阶段

        Raises:
            CaptureStateError: 不在读题阶段时调用
            语音源 listen() 抛出的异常原样抛出，此时录制已停止，仍停留在读题阶段
        """
        with self._lock:
            if self._phase is CapturePhase.RECORDING:
                raise CaptureStateError("已有录制在进行")
            if self._phase is not CapturePhase.READ_PROMPT:
                raise CaptureStateError(f"当前阶段 {self._phase.value} 不能开始回答")
            if not self.is_face_ready():
                logger.info("人脸质量不足，暂不开始录制")
                return False

            self._face.start()
            self._face_active = True
            self._start_time = self._clock()

            try:
                future = self._speech.listen(self.answer_timeout)
            except Exception:
                # 语音监听启动失败时停止录制，停留在读题阶段
                logger.exception("语音监听启动失败")
                self._cleanup()
                raise
            self._listening = True

            self._generation += 1
            generation = self._generation
            self._set_phase(CapturePhase.RECORDING)
            self._timeout_handle = self._scheduler(
                self.answer_timeout,
                lambda: self._resolve(generation, SpeechTimeout()),
            )
        # 回调可能立即执行，必须在状态锁外注册
        future.add_done_callback(lambda f: self._on_speech_done(generation, f))
        self._flush()
        return True

    def retry(self) -> None:
        """超时、识别错误或校准拒绝后重播同一道题"""
        # 检查阶段和重新开始必须在同一次加锁内完成，否则并发的 cancel() 会被覆盖
        with self._lock:
            if self._phase not in RETRYABLE_PHASES:
                raise CaptureStateError(f"当前阶段 {self._phase.value} 不能重试")
            self._begin_locked(self._question)
        self._flush()

    def cancel(self) -> None:
        """在任意阶段中止并回到 IDLE，可重复调用"""
        with self._lock:
            self._generation += 1
            self._cleanup()
            if self._phase is not CapturePhase.IDLE:
                self._set_phase(CapturePhase.IDLE)
            self._question = None
        self._flush()

    # --- 内部回调 ---

    def _on_countdown_elapsed(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._phase is not CapturePhase.COUNTDOWN:
                return
            self._countdown_handle = None
            self._set_phase(CapturePhase.READ_PROMPT)
        self._flush()

    def _on_speech_done(self, generation: int, future: Future) -> None:
        if future.cancelled():
            return
        self._resolve(generation, future.result())

    def _resolve(self, generation: int, result: SpeechResult) -> Optional[CaptureOutcome]:
        """回答、超时、错误的汇合点，每次录制只生效一次"""
        with self._lock:
            if generation != self._generation or self._phase is not CapturePhase.RECORDING:
                logger.debug("丢弃过期的采集结果: %s", result)
                return None
            self._generation += 1

            duration = self._clock() - self._start_time
            samples = self._stop_face()
            self._cleanup()

            if isinstance(result, SpeechAnswer):
                outcome = self._build_outcome(result.answer, samples, duration)
            elif isinstance(result, SpeechTimeout):
                logger.warning("回答超时")
                outcome = TimedOut()
            else:
                logger.warning("语音识别失败: %s", result.message)
                outcome = Failed(result.message)

            self._last_outcome = outcome
            self._set_phase(_PHASE_FOR_OUTCOME[type(outcome)], outcome)
        self._flush()
        return outcome

    def _build_outcome(self, answer: SpokenAnswer, samples, duration: float) -> CaptureOutcome:
        question = self._question
        expected = getattr(question, "expected_answer", None)
        if self.verify_expected_answer and expected is not None and answer is not expected:
            logger.warning("校准回答错误: 期望 %s，实际 %s", expected.value, answer.value)
            return Rejected(expected=expected, actual=answer)

        logger.info("记录回答 %s，用时 %.2fs，样本 %d 个", answer.value, duration, len(samples))
        return Resolved(QuestionResponse(
            question=question,
            spoken_answer=answer,
            face_samples=tuple(samples),
            response_duration=duration,
        ))

    def _stop_face(self):
        if not self._face_active:
            return []
        self._face_active = False
        return self._face.stop()

    def _cleanup(self) -> None:
        """所有退出路径共用的清理：取消计时器、停止录制、取消语音监听"""
        for handle in (self._countdown_handle, self._timeout_handle):
            if handle is not None:
                handle.cancel()
        self._countdown_handle = None
        self._timeout_handle = None
        self._stop_face()
        if self._listening:
            self._listening = False
            self._speech.cancel()
        self._start_time = None

    def _set_phase(self, phase: CapturePhase, outcome: Optional[CaptureOutcome] = None) -> None:
        previous = self._phase
        self._phase = phase
        self._pending.append(PhaseChange(previous, phase, self._question, outcome))
        logger.debug("采集阶段 %s -> %s", previous.value, phase.value)

    def _flush(self) -> None:
        """在状态锁外按顺序通知监听者"""
        with self._notify_lock:
            while True:
                with self._lock:
                    if not self._pending:
                        return
                    change = self._pending.pop(0)
                    listeners = list(self._listeners)
                for listener in listeners:
                    listener(change)


_PHASE_FOR_OUTCOME = {
    Resolved: CapturePhase.RESOLVED,
    TimedOut: CapturePhase.TIMED_OUT,
    Failed: CapturePhase.FAILED,
    Rejected: CapturePhase.REJECTED,
}
