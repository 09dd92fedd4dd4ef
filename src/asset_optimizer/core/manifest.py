"""优化记录（assets.json）的读取、创建与持久化。"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Tuple

from asset_optimizer.core.exceptions import ManifestError
from asset_optimizer.core.models import AssetRecord

LOGGER = logging.getLogger(__name__)

MANIFEST_DIRNAME = ".expo-shared"
MANIFEST_FILENAME = "assets.json"

ManifestCreatedCallback = Optional[Callable[[Path], None]]


@dataclass(slots=True)
class ManifestHandle:
    """指向某个项目优化记录文件的句柄，用于写回。"""

    path: Path


def manifest_path(project_root: Path) -> Path:
    return Path(project_root) / MANIFEST_DIRNAME / MANIFEST_FILENAME


def _parse_record(path: Path) -> AssetRecord:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ManifestError(f"无法读取优化记录: {path}") from exc
    except ValueError as exc:
        raise ManifestError(f"优化记录不是合法的 JSON: {path}") from exc

    if not isinstance(data, dict):
        raise ManifestError(f"优化记录顶层必须是对象: {path}")
    for key, value in data.items():
        if not isinstance(value, bool):
            raise ManifestError(f"优化记录中 {key} 的值必须是布尔值: {path}")
    return data


def read_manifest(project_root: Path) -> Optional[AssetRecord]:
    """只读方式加载优化记录，文件不存在时返回 None。"""

    path = manifest_path(project_root)
    if not path.exists():
        return None
    return _parse_record(path)


def load_manifest(
    project_root: Path,
    on_created: ManifestCreatedCallback = None,
) -> Tuple[ManifestHandle, AssetRecord]:
    """加载优化记录，目录或文件缺失时自动创建空记录。

    首次创建时调用 ``on_created``，由调用方决定是否提示用户。已存在但内容
    损坏的文件不会被覆盖，直接抛出 ManifestError。
    """

    path = manifest_path(project_root)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ManifestError(f"无法创建目录: {path.parent}") from exc

    handle = ManifestHandle(path=path)
    if not path.exists():
        save_manifest(handle, {})
        if on_created:
            on_created(path)

    return handle, _parse_record(path)


def save_manifest(handle: ManifestHandle, record: AssetRecord) -> None:
    """将优化记录写回磁盘。

    先写入同目录下的临时文件再原子替换，读取方不会看到写了一半的文件。
    """

    payload = json.dumps(record, indent=2, sort_keys=True) + "\n"
    target = handle.path
    try:
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    except OSError as exc:
        raise ManifestError(f"无法在 {target.parent} 中创建临时文件") from exc

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp:
            tmp.write(payload)
        os.replace(tmp_name, target)
    except OSError as exc:
        Path(tmp_name).unlink(missing_ok=True)
        raise ManifestError(f"写入优化记录失败: {target}") from exc
    LOGGER.debug("已写入 %d 条优化记录到 %s", len(record), target)
