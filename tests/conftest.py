import sys
import os

# Add project root to sys.path so tests can import from all modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from concurrent.futures import Future, InvalidStateError

import pytest
from hypothesis import settings

from models.data_models import (
    FaceQuality,
    FaceSample,
    SpeechAnswer,
    SpeechError,
    SpeechTimeout,
)

# CI profile: more examples for thorough testing
settings.register_profile("ci", max_examples=200)
# Dev profile: fewer examples for faster iteration
settings.register_profile("dev", max_examples=100)
# Default to dev profile
settings.load_profile("dev")


class ManualHandle:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.callback()


class ManualScheduler:
    """手动触发的调度器，记录所有已调度的回调"""

    def __init__(self):
        self.handles = []

    def __call__(self, delay, callback):
        handle = ManualHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def last(self):
        return self.handles[-1]

    def pending(self):
        return [h for h in self.handles if not h.cancelled]


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeFaceSource:
    """记录 start/stop 调用次数的面部样本源"""

    def __init__(self, quality=FaceQuality.GOOD, samples=None):
        self.quality = quality
        self.samples = list(samples or [])
        self.is_recording = False
        self.start_calls = 0
        self.stop_calls = 0

    def start(self):
        self.start_calls += 1
        self.is_recording = True

    def stop(self):
        self.stop_calls += 1
        if not self.is_recording:
            return []
        self.is_recording = False
        return list(self.samples)

    def close(self):
        self.is_recording = False


class FakeSpeechSource:
    """listen() 返回可由测试手动完成的 Future"""

    def __init__(self):
        self.futures = []
        self.cancel_calls = 0
        self.timeouts = []

    @property
    def future(self):
        return self.futures[-1]

    def listen(self, timeout_seconds):
        self.timeouts.append(timeout_seconds)
        future = Future()
        self.futures.append(future)
        return future

    def cancel(self):
        self.cancel_calls += 1
        if self.futures and not self.future.done():
            self.future.cancel()

    def answer(self, spoken_answer, future=None):
        self._complete(future or self.future, SpeechAnswer(spoken_answer))

    def error(self, message):
        self._complete(self.future, SpeechError(message))

    def timeout(self):
        self._complete(self.future, SpeechTimeout())

    @staticmethod
    def _complete(future, result):
        # 已被编排器取消的 Future 不再接受结果
        try:
            future.set_result(result)
        except InvalidStateError:
            pass


def make_sample(timestamp, rotation=(0.0, 0.0, 0.0), **features):
    return FaceSample(timestamp=timestamp, features=dict(features), rotation=rotation)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def face_source():
    return FakeFaceSource()


@pytest.fixture
def speech_source():
    return FakeSpeechSource()
