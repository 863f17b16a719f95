"""Hot Seat 多人模式：玩家轮流使用同一设备回答问题"""

import logging
from typing import Dict, List, Optional, Sequence

from evaluators.session_aggregator import SessionAggregator
from game.game_session import GameSession, VerdictMode
from models.data_models import GameQuestion, Player, PlayerScore, QuestionResult

logger = logging.getLogger(__name__)


class HotSeatSession:
    """每名玩家依次回答 questions_per_player 道题，最后按说真话比例排名"""

    def __init__(
        self,
        players: Sequence[Player],
        questions: Sequence[GameQuestion],
        face_source,
        speech_source,
        questions_per_player: int = 5,
        aggregator: Optional[SessionAggregator] = None,
        **session_options,
    ):
        if not players:
            raise ValueError("至少需要一名玩家")

        self.players: List[Player] = list(players)
        self.questions_per_player = questions_per_player
        self.aggregator = aggregator or SessionAggregator()

        self.sessions: List[GameSession] = []
        for index, player in enumerate(self.players):
            start = index * questions_per_player
            player_questions = list(questions[start:start + questions_per_player])
            self.sessions.append(GameSession(
                player,
                player_questions,
                face_source,
                speech_source,
                verdict_mode=VerdictMode.AFTER_EACH,
                aggregator=self.aggregator,
                **session_options,
            ))
        self._current_player_index = 0
        logger.info("Hot Seat 开始，共 %d 名玩家", len(self.players))

    @property
    def current_player(self) -> Player:
        return self.players[self._current_player_index]

    @property
    def current_session(self) -> GameSession:
        return self.sessions[self._current_player_index]

    @property
    def is_last_player(self) -> bool:
        return self._current_player_index >= len(self.players) - 1

    @property
    def is_complete(self) -> bool:
        return self.is_last_player and self.current_session.is_complete

    def move_to_next_player(self) -> Player:
        """结束当前玩家的回合并切换到下一名玩家"""
        if self.is_last_player:
            raise ValueError("已经是最后一名玩家")
        self.current_session.cleanup()
        self._current_player_index += 1
        logger.info("轮到 %s", self.current_player.name)
        return self.current_player

    def results_by_player(self) -> Dict[str, List[QuestionResult]]:
        return {session.player.id: session.results for session in self.sessions}

    def _verdicts_by_player(self):
        return {
            player_id: [r.verdict for r in results]
            for player_id, results in self.results_by_player().items()
        }

    def scores(self) -> List[PlayerScore]:
        return self.aggregator.rank(self.players, self._verdicts_by_player())

    def winner(self) -> Optional[Player]:
        return self.aggregator.winner(self.players, self._verdicts_by_player())

    def cleanup(self) -> None:
        for session in self.sessions:
            session.cleanup()
