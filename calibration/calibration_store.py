"""校准数据存储模块，按玩家 ID 将校准数据保存为 JSON 文件"""

import json
import logging
import os
from typing import Optional

from models.data_models import CalibrationData

logger = logging.getLogger(__name__)


class CalibrationStore:
    """每名玩家一个 JSON 文件，重新校准时整体覆盖"""

    def __init__(self, directory: str):
        self.directory = directory

    def path_for(self, player_id: str) -> str:
        return os.path.join(self.directory, f"{player_id}.json")

    def save(self, data: CalibrationData) -> str:
        """
        保存校准数据。

        Returns:
            写入的文件路径
        """
        output_path = self.path_for(data.player_id)
        os.makedirs(self.directory or ".", exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(data.to_dict(), f, indent=4, ensure_ascii=False)

        logger.info("校准数据已保存: %s", output_path)
        return output_path

    def load(self, player_id: str) -> Optional[CalibrationData]:
        """读取校准数据，文件不存在或格式错误时返回 None"""
        path = self.path_for(player_id)
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError:
            logger.warning("校准文件格式错误: %s", path)
            return None

        try:
            return CalibrationData.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("校准文件字段无效: %s (%s)", path, e)
            return None

    def delete(self, player_id: str) -> bool:
        """删除玩家的校准数据，返回是否存在并已删除"""
        path = self.path_for(player_id)
        if not os.path.exists(path):
            return False
        os.remove(path)
        return True
