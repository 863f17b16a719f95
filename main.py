"""测谎派对游戏控制台入口"""

import argparse
import json
import logging
import queue
import sys

from calibration.baseline_builder import BaselineBuilder
from calibration.calibration_session import CalibrationSession
from calibration.calibration_store import CalibrationStore
from capture.face_recorder import CameraFaceSource
from capture.response_orchestrator import CapturePhase, PhaseChange
from capture.speech_source import TranscriptAnswerSource
from detectors.eye_analyzer import EyeAnalyzer
from detectors.face_detector import FaceDetector
from evaluators.verdict_evaluator import VerdictEvaluator
from game.game_session import GameSession, VerdictMode
from game.question_bank import generate_question_pack
from models.data_models import Failed, Gender, Player, Rejected, Resolved, TimedOut

# 默认配置
_DEFAULTS = {
    "answer_timeout": 10.0,
    "countdown_seconds": 3.0,
    "expected_frame_rate": 30.0,
    "blink_threshold": 0.5,
    "head_movement_threshold": 0.3,
    "brow_tension_threshold": 0.5,
    "camera_index": 0,
    "face_model_path": "models/trained/face_landmarker.task",
    "calibration_dir": "calibration_data",
    "questions_per_game": 10,
}

_SESSION_VERDICT_TEXT = {
    "mostly_truthful": "大部分回答可信",
    "mixed": "真假参半",
    "mostly_lying": "大部分回答可疑",
    "inconclusive": "无法判断",
}


class LieDetectSystem:
    """测谎游戏主程序，负责加载配置、连接摄像头和语音输入，驱动校准和游戏流程。"""

    def __init__(self, config_path=None):
        self.config = self._load_config(config_path)

        eye_analyzer = EyeAnalyzer(blink_threshold=self.config["blink_threshold"])
        self.baseline_builder = BaselineBuilder(
            eye_analyzer=eye_analyzer,
            expected_frame_rate=self.config["expected_frame_rate"],
        )
        self.evaluator = VerdictEvaluator(
            head_movement_threshold=self.config["head_movement_threshold"],
            brow_tension_threshold=self.config["brow_tension_threshold"],
            eye_analyzer=eye_analyzer,
        )
        self.store = CalibrationStore(self.config["calibration_dir"])
        self.speech_source = TranscriptAnswerSource()

        # 摄像头在 open_camera() 中延迟打开
        self.face_detector = None
        self.face_source = None

    @staticmethod
    def _load_config(config_path):
        """从 JSON 配置文件加载参数，缺失字段使用默认值。"""
        config = dict(_DEFAULTS)

        if config_path is None:
            return config

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            print(f"警告: 配置文件不存在 {config_path}，使用默认配置")
            return config
        except json.JSONDecodeError:
            print(f"警告: 配置文件格式错误 {config_path}，使用默认配置")
            return config

        # 用配置文件中的值覆盖默认值
        for key in _DEFAULTS:
            if key in data and data[key] is not None:
                config[key] = data[key]

        return config

    def open_camera(self):
        """加载人脸模型并打开摄像头，失败时返回 False。"""
        try:
            self.face_detector = FaceDetector(self.config["face_model_path"])
        except FileNotFoundError as e:
            print(f"错误: 无法加载人脸模型 - {e}")
            return False

        self.face_source = CameraFaceSource(
            self.face_detector, camera_index=self.config["camera_index"]
        )
        if not self.face_source.open():
            print("无法打开摄像头")
            return False
        return True

    def load_player(self, name, age, gender):
        """创建玩家并读取已保存的校准数据。"""
        player = Player(name=name, age=age, gender=gender, id=name.strip().lower())
        player.calibration_data = self.store.load(player.id)
        if player.calibration_data is not None:
            player.last_calibrated_at = player.calibration_data.calibrated_at
        return player

    def run_calibration(self, player):
        """逐题进行校准，完成后保存校准数据。"""
        session = CalibrationSession(
            player,
            self.face_source,
            self.speech_source,
            answer_timeout=self.config["answer_timeout"],
            countdown_seconds=self.config["countdown_seconds"],
            baseline_builder=self.baseline_builder,
            store=self.store,
        )
        changes = queue.Queue()
        session.orchestrator.add_listener(changes.put)

        print(f"\n校准开始：请对每个问题如实回答（共 {len(session.questions)} 题）")
        try:
            while not session.is_complete:
                question = session.current_question
                session.start_question()
                change = self._run_question(session.orchestrator, question.text, changes)
                while not isinstance(change.outcome, Resolved):
                    if isinstance(change.outcome, Rejected):
                        print(f"校准时必须如实回答！期望回答: {change.outcome.expected.value}")
                    self._print_retry_reason(change)
                    session.retry_current_question()
                    change = self._run_question(session.orchestrator, question.text, changes)
            data = session.finish()
        finally:
            session.cleanup()

        print(f"校准完成，有效回答 {data.sample_count} 条")
        return data

    def run_game(self, player):
        """进行一局单人游戏并输出每题和整场判定。"""
        if not player.is_calibrated:
            print("警告: 该玩家尚未校准，判定结果将为中性")

        questions = generate_question_pack(self.config["questions_per_game"])
        session = GameSession(
            player,
            questions,
            self.face_source,
            self.speech_source,
            verdict_mode=VerdictMode.AFTER_EACH,
            evaluator=self.evaluator,
            answer_timeout=self.config["answer_timeout"],
            countdown_seconds=self.config["countdown_seconds"],
        )
        changes = queue.Queue()
        session.orchestrator.add_listener(changes.put)

        try:
            while not session.is_complete:
                question = session.current_question
                session.start_question()
                change = self._run_question(session.orchestrator, question.text, changes)
                while not isinstance(change.outcome, Resolved):
                    self._print_retry_reason(change)
                    session.retry_current_question()
                    change = self._run_question(session.orchestrator, question.text, changes)

                verdict = session.last_verdict
                label = "可疑" if verdict.is_suspicious else "可信"
                print(f"判定: {label} ({verdict.percentage}%) - {', '.join(verdict.factors)}")
                session.advance_to_next_question()
        finally:
            session.cleanup()

        overall = session.overall_verdict
        print(f"\n整场结论: {_SESSION_VERDICT_TEXT[overall.value]}")
        return overall

    def _run_question(self, orchestrator, text, changes):
        """等待倒计时、读题、回答，返回带结果的阶段切换事件。"""
        self._wait_for_phase(changes, CapturePhase.READ_PROMPT)
        print(f"\n问题: {text}")
        input("准备好后按回车开始回答...")
        while not orchestrator.start_answering():
            input("请正对摄像头，然后按回车重试...")

        line = input("你的回答 (yes/no): ")
        self.speech_source.submit_transcript(line)

        while True:
            change = changes.get()
            if change.outcome is not None:
                return change

    @staticmethod
    def _wait_for_phase(changes, phase):
        while True:
            change = changes.get()
            if change.current is phase:
                return change

    @staticmethod
    def _print_retry_reason(change: PhaseChange):
        if isinstance(change.outcome, TimedOut):
            print("回答超时，请重试")
        elif isinstance(change.outcome, Failed):
            print(f"语音识别失败: {change.outcome.message}，请重试")

    def stop(self):
        """释放摄像头和人脸检测器。"""
        self.speech_source.cancel()
        if self.face_source is not None:
            self.face_source.close()
        if self.face_detector is not None:
            self.face_detector.close()


def main():
    parser = argparse.ArgumentParser(description="测谎派对游戏")
    parser.add_argument("--player", required=True, help="玩家名字")
    parser.add_argument("--age", type=int, default=25, help="玩家年龄")
    parser.add_argument(
        "--gender",
        choices=[g.value for g in Gender],
        default=Gender.OTHER.value,
        help="玩家性别",
    )
    parser.add_argument(
        "--mode",
        choices=["calibrate", "play"],
        default="play",
        help="calibrate(校准), play(游戏)",
    )
    parser.add_argument("--config", type=str, default=None, help="JSON 配置文件路径")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    system = LieDetectSystem(config_path=args.config)
    if not system.open_camera():
        system.stop()
        sys.exit(1)

    player = system.load_player(args.player, args.age, Gender(args.gender))
    try:
        if args.mode == "calibrate":
            system.run_calibration(player)
        else:
            system.run_game(player)
    except KeyboardInterrupt:
        print("\n已退出")
    finally:
        system.stop()


if __name__ == "__main__":
    main()
