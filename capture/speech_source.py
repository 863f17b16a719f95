"""语音回答源：从识别文本中检测是/否回答，带超时"""

import logging
import re
import threading
from concurrent.futures import Future
from typing import Optional

from models.data_models import (
    SpeechAnswer,
    SpeechError,
    SpeechResult,
    SpeechTimeout,
    SpokenAnswer,
)

logger = logging.getLogger(__name__)

# 同时支持英文和波兰语回答
YES_WORDS = {"yes", "yeah", "yep", "y", "tak"}
NO_WORDS = {"no", "nope", "n", "nie", "nee"}


def detect_answer(transcript: str) -> Optional[SpokenAnswer]:
    """
    从识别文本中提取是/否回答。

    按单词匹配，先匹配"是"再匹配"否"，都未出现时返回 None
    """
    words = re.findall(r"\w+", transcript.lower())
    if any(word in YES_WORDS for word in words):
        return SpokenAnswer.YES
    if any(word in NO_WORDS for word in words):
        return SpokenAnswer.NO
    return None


class TranscriptAnswerSource:
    """
    由外部语音识别器推送文本驱动的回答源。

    同一时刻只有一个未完成的 listen()；完成 Future 的操作都在锁外进行，
    避免回调在持锁状态下重入。
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._future: Optional[Future] = None
        self._timer: Optional[threading.Timer] = None

    @property
    def is_listening(self) -> bool:
        with self._lock:
            return self._future is not None

    def listen(self, timeout_seconds: float) -> Future:
        """
        开始等待回答。

        Args:
            timeout_seconds: 超时秒数，超时后 Future 结果为 SpeechTimeout

        Returns:
            结果为 SpeechAnswer | SpeechTimeout | SpeechError 的 Future
        """
        self.cancel()

        future: Future = Future()
        timer = threading.Timer(timeout_seconds, self._on_timeout, args=(future,))
        timer.daemon = True
        with self._lock:
            self._future = future
            self._timer = timer
        timer.start()
        logger.info("开始监听回答（超时 %.1fs）", timeout_seconds)
        return future

    def submit_transcript(self, transcript: str) -> Optional[SpokenAnswer]:
        """推送一段识别文本；检测到回答时完成当前 listen()"""
        answer = detect_answer(transcript)
        if answer is not None:
            self._complete(None, SpeechAnswer(answer))
        return answer

    def report_error(self, message: str) -> None:
        """识别器出错时调用"""
        logger.warning("语音识别错误: %s", message)
        self._complete(None, SpeechError(message))

    def cancel(self) -> None:
        """取消当前 listen()，可重复调用"""
        future = self._detach(None)
        if future is not None:
            future.cancel()

    def _on_timeout(self, future: Future) -> None:
        logger.info("语音识别超时")
        self._complete(future, SpeechTimeout())

    def _complete(self, expected: Optional[Future], result: SpeechResult) -> None:
        future = self._detach(expected)
        if future is not None:
            future.set_result(result)

    def _detach(self, expected: Optional[Future]) -> Optional[Future]:
        """取走当前 Future；expected 不为 None 时仅在其仍为当前 Future 时取走"""
        with self._lock:
            future = self._future
            if future is None or (expected is not None and future is not expected):
                return None
            self._future = None
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        return future
