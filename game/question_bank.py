"""游戏题库"""

import random
from typing import Dict, List, Optional, Sequence

from models.data_models import GameQuestion, QuestionCategory

QUESTION_BANK: Dict[QuestionCategory, List[str]] = {
    QuestionCategory.GENERAL: [
        "Have you ever driven more than 20 km/h over the speed limit?",
        "Have you ever left a restaurant without paying?",
        "Have you ever given fake details online?",
        "Have you ever faked being sick to skip work or school?",
        "Have you ever fallen asleep during a video call?",
        "Do you believe in horoscopes?",
        "Have you ever checked someone else's phone without them knowing?",
        "Have you ever bought something only because it was on sale?",
    ],
    QuestionCategory.PERSONAL: [
        "Have you ever lied about your age?",
        "Have you ever cried while watching a movie?",
        "Do you have a secret talent?",
        "Do you sing in the shower?",
        "Have you ever pretended to understand what someone was talking about?",
        "Have you ever sent a message to the wrong person?",
        "Do you believe in ghosts?",
    ],
    QuestionCategory.SPICY: [
        "Have you ever kissed someone on a first date?",
        "Do you have a crush on someone who doesn't know it?",
        "Have you ever made up an excuse to skip a date?",
        "Have you ever flirted just for fun?",
    ],
    QuestionCategory.RELATIONSHIPS: [
        "Have you ever read your partner's messages?",
        "Have you ever forgotten an important anniversary?",
        "Have you ever stayed friends with an ex to make someone jealous?",
    ],
    QuestionCategory.SECRETS: [
        "Have you ever kept a secret from your best friend?",
        "Have you ever read someone's diary?",
        "Is there something you have never told anyone in this room?",
    ],
}

DEFAULT_CATEGORIES = (
    QuestionCategory.GENERAL,
    QuestionCategory.PERSONAL,
    QuestionCategory.SPICY,
)


def questions_for(category: QuestionCategory) -> List[GameQuestion]:
    return [GameQuestion(text=text, category=category) for text in QUESTION_BANK[category]]


def generate_question_pack(
    count: int = 10,
    categories: Sequence[QuestionCategory] = DEFAULT_CATEGORIES,
    rng: Optional[random.Random] = None,
) -> List[GameQuestion]:
    """从指定类别中随机抽取最多 count 道题"""
    rng = rng or random.Random()
    pool: List[GameQuestion] = []
    for category in categories:
        pool.extend(questions_for(category))
    rng.shuffle(pool)
    return pool[:count]
