"""核心数据模型定义"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple, Union


class SpokenAnswer(Enum):
    """玩家说出的回答"""
    YES = "yes"
    NO = "no"


class Gender(Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"

    @property
    def opposite(self) -> "Gender":
        if self is Gender.MALE:
            return Gender.FEMALE
        return Gender.MALE


class FaceQuality(Enum):
    """人脸跟踪质量，数值越大越好"""
    UNKNOWN = 0
    POOR = 1
    FAIR = 2
    GOOD = 3

    def at_least(self, other: "FaceQuality") -> bool:
        return self.value >= other.value


class QuestionCategory(Enum):
    GENERAL = "general"
    PERSONAL = "personal"
    SPICY = "spicy"
    RELATIONSHIPS = "relationships"
    SECRETS = "secrets"


class CalibrationCategory(Enum):
    IDENTITY = "identity"
    ENVIRONMENT = "environment"
    TEMPORAL = "temporal"


class SessionVerdict(Enum):
    """整场游戏的综合判定"""
    MOSTLY_TRUTHFUL = "mostly_truthful"
    MIXED = "mixed"
    MOSTLY_LYING = "mostly_lying"
    INCONCLUSIVE = "inconclusive"


@dataclass(frozen=True)
class FaceSample:
    """录制期间的一帧面部特征"""
    timestamp: float
    features: Mapping[str, float] = field(hash=False)
    rotation: Tuple[float, float, float]  # (pitch, yaw, roll)，弧度

    def __post_init__(self):
        # 记录后不可修改
        object.__setattr__(self, "features", MappingProxyType(dict(self.features)))
        object.__setattr__(self, "rotation", tuple(self.rotation))

    def feature(self, name: str) -> float:
        return self.features.get(name, 0.0)

    @property
    def pitch(self) -> float:
        return self.rotation[0]

    @property
    def yaw(self) -> float:
        return self.rotation[1]


@dataclass(frozen=True)
class FaceFrame:
    """人脸检测器对单帧图像的输出"""
    features: Mapping[str, float] = field(hash=False)
    rotation: Tuple[float, float, float]
    quality: FaceQuality

    def __post_init__(self):
        object.__setattr__(self, "features", MappingProxyType(dict(self.features)))


@dataclass(frozen=True)
class CalibrationQuestion:
    """校准问题，答案已知"""
    text: str
    expected_answer: SpokenAnswer
    category: CalibrationCategory
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass(frozen=True)
class GameQuestion:
    """游戏问题"""
    text: str
    category: QuestionCategory = QuestionCategory.GENERAL
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


Question = Union[CalibrationQuestion, GameQuestion]


@dataclass(frozen=True)
class QuestionResponse:
    """一次完整回答：口头答案 + 回答窗口内的面部样本"""
    question: Question
    spoken_answer: SpokenAnswer
    face_samples: Tuple[FaceSample, ...]
    response_duration: float


@dataclass(frozen=True)
class BlendshapeStats:
    mean: float
    std_dev: float
    max: float


@dataclass(frozen=True)
class FacialBaseline:
    """某一回答极性下玩家说真话时的统计基线"""
    blink_rate_mean: float
    blink_rate_std_dev: float
    gaze_stability_mean: float
    gaze_stability_std_dev: float
    response_duration_mean: float
    response_duration_std_dev: float
    blendshape_baselines: Dict[str, BlendshapeStats]

    def to_dict(self) -> dict:
        return {
            "blink_rate_mean": self.blink_rate_mean,
            "blink_rate_std_dev": self.blink_rate_std_dev,
            "gaze_stability_mean": self.gaze_stability_mean,
            "gaze_stability_std_dev": self.gaze_stability_std_dev,
            "response_duration_mean": self.response_duration_mean,
            "response_duration_std_dev": self.response_duration_std_dev,
            "blendshape_baselines": {
                name: {"mean": s.mean, "std_dev": s.std_dev, "max": s.max}
                for name, s in self.blendshape_baselines.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FacialBaseline":
        return cls(
            blink_rate_mean=float(data["blink_rate_mean"]),
            blink_rate_std_dev=float(data["blink_rate_std_dev"]),
            gaze_stability_mean=float(data["gaze_stability_mean"]),
            gaze_stability_std_dev=float(data["gaze_stability_std_dev"]),
            response_duration_mean=float(data["response_duration_mean"]),
            response_duration_std_dev=float(data["response_duration_std_dev"]),
            blendshape_baselines={
                name: BlendshapeStats(
                    mean=float(s["mean"]), std_dev=float(s["std_dev"]), max=float(s["max"])
                )
                for name, s in data.get("blendshape_baselines", {}).items()
            },
        )


@dataclass(frozen=True)
class CalibrationData:
    """玩家校准结果，重新校准时整体替换"""
    player_id: str
    calibrated_at: datetime
    yes_baseline: FacialBaseline
    no_baseline: FacialBaseline
    sample_count: int
    average_face_confidence: float

    def baseline_for(self, answer: SpokenAnswer) -> FacialBaseline:
        return self.yes_baseline if answer is SpokenAnswer.YES else self.no_baseline

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "calibrated_at": self.calibrated_at.isoformat(),
            "yes_baseline": self.yes_baseline.to_dict(),
            "no_baseline": self.no_baseline.to_dict(),
            "sample_count": self.sample_count,
            "average_face_confidence": self.average_face_confidence,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CalibrationData":
        return cls(
            player_id=data["player_id"],
            calibrated_at=datetime.fromisoformat(data["calibrated_at"]),
            yes_baseline=FacialBaseline.from_dict(data["yes_baseline"]),
            no_baseline=FacialBaseline.from_dict(data["no_baseline"]),
            sample_count=int(data["sample_count"]),
            average_face_confidence=float(data["average_face_confidence"]),
        )


@dataclass(frozen=True)
class QuestionVerdict:
    """单题判定结果"""
    confidence: float
    is_suspicious: bool
    factors: Tuple[str, ...]

    def __post_init__(self):
        object.__setattr__(self, "factors", tuple(self.factors))

    @property
    def percentage(self) -> int:
        return int(self.confidence * 100)


@dataclass(frozen=True)
class QuestionResult:
    """游戏中一题的结果，不保留面部样本"""
    question: GameQuestion
    spoken_answer: SpokenAnswer
    response_duration: float
    verdict: QuestionVerdict


@dataclass
class Player:
    """玩家（外部实体），最多持有一份校准数据"""
    name: str
    age: int
    gender: Gender
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    calibration_data: Optional[CalibrationData] = None
    last_calibrated_at: Optional[datetime] = None

    @property
    def is_calibrated(self) -> bool:
        return self.calibration_data is not None


@dataclass(frozen=True)
class PlayerScore:
    """Hot Seat 模式下单个玩家的得分"""
    player: Player
    truthful_count: int
    suspicious_count: int
    total_questions: int
    truthful_percentage: int
    rank: str


# --- 语音识别结果 ---

@dataclass(frozen=True)
class SpeechAnswer:
    answer: SpokenAnswer


@dataclass(frozen=True)
class SpeechTimeout:
    pass


@dataclass(frozen=True)
class SpeechError:
    message: str


SpeechResult = Union[SpeechAnswer, SpeechTimeout, SpeechError]


# --- 一次采集的结果 ---

@dataclass(frozen=True)
class Resolved:
    response: QuestionResponse


@dataclass(frozen=True)
class TimedOut:
    pass


@dataclass(frozen=True)
class Failed:
    message: str


@dataclass(frozen=True)
class Rejected:
    """校准期间回答与预期不符"""
    expected: SpokenAnswer
    actual: SpokenAnswer


CaptureOutcome = Union[Resolved, TimedOut, Failed, Rejected]
