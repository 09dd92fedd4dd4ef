"""读取项目配置中的资源打包模式。"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from asset_optimizer.core.exceptions import InvalidConfigurationError

LOGGER = logging.getLogger(__name__)

CONFIG_FILENAME = "app.json"


def read_asset_bundle_patterns(project_root: Path) -> list[str]:
    """返回 ``app.json`` 中声明的 ``assetBundlePatterns``。

    配置文件或字段缺失时返回空列表，由调用方决定默认模式。
    """

    config_path = Path(project_root) / CONFIG_FILENAME
    if not config_path.is_file():
        LOGGER.debug("未找到项目配置文件: %s", config_path)
        return []

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise InvalidConfigurationError(f"无法解析项目配置: {config_path}") from exc

    if not isinstance(data, dict):
        raise InvalidConfigurationError(f"项目配置顶层必须是对象: {config_path}")

    exp = data.get("expo", data)
    if not isinstance(exp, dict):
        raise InvalidConfigurationError(f"expo 字段必须是对象: {config_path}")

    patterns = exp.get("assetBundlePatterns")
    if patterns is None:
        return []
    if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
        raise InvalidConfigurationError("assetBundlePatterns 必须是字符串列表")
    return list(patterns)
