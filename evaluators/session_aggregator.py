"""整场判定模块，汇总多道题的判定结果"""

from typing import Dict, List, Optional, Sequence

from models.data_models import Player, PlayerScore, QuestionVerdict, SessionVerdict


class SessionAggregator:
    """按可疑题目占比给出整场结论，并计算 Hot Seat 玩家得分"""

    def __init__(self, lying_ratio: float = 0.5, mixed_ratio: float = 0.3):
        self.lying_ratio = lying_ratio
        self.mixed_ratio = mixed_ratio

    def classify(self, verdicts: Sequence[QuestionVerdict]) -> SessionVerdict:
        """
        整场结论。

        可疑占比 >= 0.5 为 MOSTLY_LYING，[0.3, 0.5) 为 MIXED，
        < 0.3 为 MOSTLY_TRUTHFUL，没有题目时为 INCONCLUSIVE
        """
        total = len(verdicts)
        if total == 0:
            return SessionVerdict.INCONCLUSIVE

        suspicious_ratio = sum(1 for v in verdicts if v.is_suspicious) / total

        if suspicious_ratio >= self.lying_ratio:
            return SessionVerdict.MOSTLY_LYING
        if suspicious_ratio >= self.mixed_ratio:
            return SessionVerdict.MIXED
        return SessionVerdict.MOSTLY_TRUTHFUL

    @staticmethod
    def rank_title(truthful_percentage: int) -> str:
        if truthful_percentage >= 80:
            return "Master of Truth"
        if truthful_percentage >= 60:
            return "Honest"
        if truthful_percentage >= 40:
            return "Average"
        return "Suspect"

    def player_score(self, player: Player, verdicts: Sequence[QuestionVerdict]) -> PlayerScore:
        total = len(verdicts)
        suspicious = sum(1 for v in verdicts if v.is_suspicious)
        truthful = total - suspicious
        percentage = int(truthful / total * 100) if total > 0 else 0
        return PlayerScore(
            player=player,
            truthful_count=truthful,
            suspicious_count=suspicious,
            total_questions=total,
            truthful_percentage=percentage,
            rank=self.rank_title(percentage),
        )

    def rank(
        self,
        players: Sequence[Player],
        verdicts_by_player: Dict[str, Sequence[QuestionVerdict]],
    ) -> List[PlayerScore]:
        """按说真话比例从高到低排序"""
        scores = [self.player_score(p, verdicts_by_player.get(p.id, [])) for p in players]
        return sorted(scores, key=lambda s: s.truthful_percentage, reverse=True)

    @staticmethod
    def winner(
        players: Sequence[Player],
        verdicts_by_player: Dict[str, Sequence[QuestionVerdict]],
    ) -> Optional[Player]:
        """说真话次数最多的玩家，并列时取靠前者"""
        best: Optional[Player] = None
        best_count = -1
        for player in players:
            count = sum(1 for v in verdicts_by_player.get(player.id, []) if not v.is_suspicious)
            if count > best_count:
                best, best_count = player, count
        return best
