"""Tests for main.py LieDetectSystem - config loading, player loading and console flows."""

import json
from unittest.mock import patch

import pytest

from conftest import FakeFaceSource
from main import LieDetectSystem, _DEFAULTS
from models.data_models import (
    CalibrationCategory,
    CalibrationQuestion,
    Gender,
    SessionVerdict,
    SpokenAnswer,
)


class TestLoadConfig:
    """Test LieDetectSystem._load_config static method."""

    def test_no_config_path_returns_defaults(self):
        config = LieDetectSystem._load_config(None)
        assert config == _DEFAULTS

    def test_valid_config_file(self, tmp_path):
        cfg = {
            "answer_timeout": 8.0,
            "countdown_seconds": 2.0,
            "head_movement_threshold": 0.4,
            "brow_tension_threshold": 0.6,
            "camera_index": 1,
            "questions_per_game": 5,
        }
        cfg_file = tmp_path / "config.json"
        cfg_file.write_text(json.dumps(cfg), encoding="utf-8")

        config = LieDetectSystem._load_config(str(cfg_file))
        assert config["answer_timeout"] == 8.0
        assert config["countdown_seconds"] == 2.0
        assert config["head_movement_threshold"] == 0.4
        assert config["brow_tension_threshold"] == 0.6
        assert config["camera_index"] == 1
        assert config["questions_per_game"] == 5

    def test_missing_config_file_uses_defaults(self, capsys):
        config = LieDetectSystem._load_config("/nonexistent/path.json")
        assert config == _DEFAULTS
        captured = capsys.readouterr()
        assert "配置文件不存在" in captured.out

    def test_invalid_json_uses_defaults(self, tmp_path, capsys):
        cfg_file = tmp_path / "bad.json"
        cfg_file.write_text("not valid json {{{", encoding="utf-8")

        config = LieDetectSystem._load_config(str(cfg_file))
        assert config == _DEFAULTS
        captured = capsys.readouterr()
        assert "配置文件格式错误" in captured.out

    def test_partial_config_fills_defaults(self, tmp_path):
        cfg = {"blink_threshold": 0.6}
        cfg_file = tmp_path / "partial.json"
        cfg_file.write_text(json.dumps(cfg), encoding="utf-8")

        config = LieDetectSystem._load_config(str(cfg_file))
        assert config["blink_threshold"] == 0.6
        assert config["answer_timeout"] == _DEFAULTS["answer_timeout"]
        assert config["expected_frame_rate"] == _DEFAULTS["expected_frame_rate"]

    def test_null_values_in_config_use_defaults(self, tmp_path):
        cfg = {"answer_timeout": None, "countdown_seconds": 1.0}
        cfg_file = tmp_path / "nulls.json"
        cfg_file.write_text(json.dumps(cfg), encoding="utf-8")

        config = LieDetectSystem._load_config(str(cfg_file))
        assert config["answer_timeout"] == _DEFAULTS["answer_timeout"]
        assert config["countdown_seconds"] == 1.0

    def test_extra_fields_ignored(self, tmp_path):
        cfg = {"blink_threshold": 0.45, "unknown_field": 999}
        cfg_file = tmp_path / "extra.json"
        cfg_file.write_text(json.dumps(cfg), encoding="utf-8")

        config = LieDetectSystem._load_config(str(cfg_file))
        assert config["blink_threshold"] == 0.45
        assert "unknown_field" not in config


def _write_config(tmp_path, **overrides):
    cfg = {
        "countdown_seconds": 0.0,
        "answer_timeout": 5.0,
        "calibration_dir": str(tmp_path / "calibration"),
        "face_model_path": str(tmp_path / "missing.task"),
    }
    cfg.update(overrides)
    cfg_file = tmp_path / "config.json"
    cfg_file.write_text(json.dumps(cfg), encoding="utf-8")
    return str(cfg_file)


class TestLieDetectSystemInit:
    """Test LieDetectSystem initialization."""

    def test_init_with_config(self, tmp_path):
        config_path = _write_config(tmp_path, head_movement_threshold=0.45, blink_threshold=0.7)
        system = LieDetectSystem(config_path=config_path)
        assert system.evaluator.head_movement_threshold == 0.45
        assert system.evaluator.brow_tension_threshold == _DEFAULTS["brow_tension_threshold"]
        assert system.evaluator.eye_analyzer.blink_threshold == 0.7
        assert system.baseline_builder.eye_analyzer is system.evaluator.eye_analyzer
        assert system.store.directory == str(tmp_path / "calibration")

    def test_open_camera_without_model(self, tmp_path, capsys):
        """open_camera() should fail cleanly when the face model is missing."""
        system = LieDetectSystem(config_path=_write_config(tmp_path))
        assert system.open_camera() is False
        assert "无法加载人脸模型" in capsys.readouterr().out

    def test_stop_without_camera(self):
        """stop() should not raise even if camera was never opened."""
        system = LieDetectSystem()
        system.stop()  # Should not raise

    def test_load_player_without_calibration(self, tmp_path):
        system = LieDetectSystem(config_path=_write_config(tmp_path))
        player = system.load_player("Alex", 30, Gender.MALE)
        assert player.id == "alex"
        assert not player.is_calibrated


class TestConsoleFlows:
    """Drive run_calibration / run_game with scripted console input."""

    @pytest.fixture
    def system(self, tmp_path):
        system = LieDetectSystem(config_path=_write_config(tmp_path, questions_per_game=2))
        system.face_source = FakeFaceSource()
        yield system
        system.stop()

    def test_calibration_retries_wrong_answer_and_saves(self, system, capsys):
        questions = [
            CalibrationQuestion("Is your name Alex?", SpokenAnswer.YES, CalibrationCategory.IDENTITY),
            CalibrationQuestion("Are you sleeping right now?", SpokenAnswer.NO, CalibrationCategory.ENVIRONMENT),
        ]
        player = system.load_player("Alex", 30, Gender.MALE)
        answers = ["", "no", "", "yes", "", "nope"]

        with patch("calibration.calibration_session.generate_calibration_questions", return_value=questions), \
                patch("builtins.input", side_effect=answers):
            data = system.run_calibration(player)

        assert data.sample_count == 2
        assert player.is_calibrated
        assert "校准时必须如实回答" in capsys.readouterr().out

        reloaded = system.load_player("Alex", 30, Gender.MALE)
        assert reloaded.calibration_data == data
        assert reloaded.last_calibrated_at == data.calibrated_at

    def test_game_with_uncalibrated_player(self, system, capsys):
        player = system.load_player("Guest", 20, Gender.OTHER)

        with patch("builtins.input", side_effect=["", "yes", "", "no"]):
            overall = system.run_game(player)

        assert overall == SessionVerdict.MOSTLY_TRUTHFUL
        out = capsys.readouterr().out
        assert "尚未校准" in out
        assert out.count("判定: 可信 (50%)") == 2
