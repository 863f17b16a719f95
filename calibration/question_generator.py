"""校准问题生成模块，根据玩家资料生成答案已知的问题"""

import random
from datetime import date
from typing import List, Optional

from models.data_models import (
    CalibrationCategory,
    CalibrationQuestion,
    Gender,
    Player,
    SpokenAnswer,
)

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]
GENDER_NOUNS = {
    Gender.MALE: "a man",
    Gender.FEMALE: "a woman",
    Gender.OTHER: "a non-binary person",
}


def wrong_month_name(current_month: int) -> str:
    """与当前月份相隔半年的月份名"""
    wrong_month = (current_month + 6) % 12
    if wrong_month == 0:
        wrong_month = 12
    return MONTH_NAMES[wrong_month - 1]


def generate_calibration_questions(
    player: Player,
    today: Optional[date] = None,
    rng: Optional[random.Random] = None,
) -> List[CalibrationQuestion]:
    """
    生成 8 道校准问题：4 道答案为"是"，4 道答案为"否"，顺序打乱。

    Args:
        player: 玩家资料
        today: 当前日期，默认今天
        rng: 随机数生成器，用于打乱顺序
    """
    today = today or date.today()
    rng = rng or random.Random()

    yes, no = SpokenAnswer.YES, SpokenAnswer.NO
    identity = CalibrationCategory.IDENTITY
    environment = CalibrationCategory.ENVIRONMENT
    temporal = CalibrationCategory.TEMPORAL

    questions = [
        CalibrationQuestion(f"Is your name {player.name}?", yes, identity),
        CalibrationQuestion(f"Are you {GENDER_NOUNS[player.gender]}?", yes, identity),
        CalibrationQuestion("Can you see this screen?", yes, environment),
        CalibrationQuestion(f"Is today {DAY_NAMES[today.weekday()]}?", yes, temporal),
        CalibrationQuestion(f"Are you {player.age + 5} years old?", no, identity),
        CalibrationQuestion(f"Are you {GENDER_NOUNS[player.gender.opposite]}?", no, identity),
        CalibrationQuestion("Are you sleeping right now?", no, environment),
        CalibrationQuestion(f"Is it {wrong_month_name(today.month)} now?", no, temporal),
    ]
    rng.shuffle(questions)
    return questions
