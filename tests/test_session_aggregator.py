"""SessionAggregator 单元测试"""

import pytest

from evaluators.session_aggregator import SessionAggregator
from models.data_models import Gender, Player, QuestionVerdict, SessionVerdict


def _verdicts(suspicious, total):
    return [
        QuestionVerdict(confidence=0.8 if i < suspicious else 0.1, is_suspicious=i < suspicious, factors=["x"])
        for i in range(total)
    ]


class TestClassify:
    """测试 classify() 方法"""

    def test_mostly_lying(self):
        """10 题中 6 题可疑 → 0.6"""
        assert SessionAggregator().classify(_verdicts(6, 10)) == SessionVerdict.MOSTLY_LYING

    def test_half_is_mostly_lying(self):
        assert SessionAggregator().classify(_verdicts(5, 10)) == SessionVerdict.MOSTLY_LYING

    def test_mixed(self):
        assert SessionAggregator().classify(_verdicts(3, 10)) == SessionVerdict.MIXED
        assert SessionAggregator().classify(_verdicts(4, 10)) == SessionVerdict.MIXED

    def test_mostly_truthful(self):
        assert SessionAggregator().classify(_verdicts(2, 10)) == SessionVerdict.MOSTLY_TRUTHFUL
        assert SessionAggregator().classify(_verdicts(0, 3)) == SessionVerdict.MOSTLY_TRUTHFUL

    def test_no_verdicts_is_inconclusive(self):
        assert SessionAggregator().classify([]) == SessionVerdict.INCONCLUSIVE


class TestHotSeatScores:
    """测试玩家得分和排名"""

    @pytest.fixture
    def players(self):
        return [
            Player("Alex", 25, Gender.MALE, id="alex"),
            Player("Beata", 31, Gender.FEMALE, id="beata"),
            Player("Chris", 22, Gender.OTHER, id="chris"),
        ]

    @pytest.mark.parametrize(
        "percentage, title",
        [(100, "Master of Truth"), (80, "Master of Truth"), (60, "Honest"), (40, "Average"), (39, "Suspect")],
    )
    def test_rank_title(self, percentage, title):
        assert SessionAggregator.rank_title(percentage) == title

    def test_player_score(self, players):
        score = SessionAggregator().player_score(players[0], _verdicts(1, 5))
        assert score.truthful_count == 4
        assert score.suspicious_count == 1
        assert score.total_questions == 5
        assert score.truthful_percentage == 80
        assert score.rank == "Master of Truth"

    def test_player_without_answers(self, players):
        score = SessionAggregator().player_score(players[0], [])
        assert score.truthful_percentage == 0
        assert score.rank == "Suspect"

    def test_rank_sorted_by_percentage(self, players):
        verdicts = {
            "alex": _verdicts(3, 5),
            "beata": _verdicts(0, 5),
            "chris": _verdicts(1, 5),
        }
        scores = SessionAggregator().rank(players, verdicts)
        assert [s.player.id for s in scores] == ["beata", "chris", "alex"]

    def test_winner(self, players):
        verdicts = {"alex": _verdicts(2, 5), "beata": _verdicts(1, 5), "chris": _verdicts(4, 5)}
        assert SessionAggregator.winner(players, verdicts).id == "beata"

    def test_winner_tie_goes_to_first_player(self, players):
        verdicts = {"alex": _verdicts(1, 5), "beata": _verdicts(1, 5), "chris": _verdicts(1, 5)}
        assert SessionAggregator.winner(players, verdicts).id == "alex"

    def test_no_players(self):
        assert SessionAggregator.winner([], {}) is None
