"""文件内容摘要计算。"""

from __future__ import annotations

import hashlib
from pathlib import Path

from asset_optimizer.core.exceptions import AssetReadError

CHUNK_SIZE = 1024 * 1024


def calculate_hash(path: Path) -> str:
    """计算文件内容的 SHA-256 十六进制摘要。"""

    digest = hashlib.sha256()
    try:
        with Path(path).open("rb") as handle:
            for chunk in iter(lambda: handle.read(CHUNK_SIZE), b""):
                digest.update(chunk)
    except OSError as exc:
        raise AssetReadError(f"无法读取文件: {path}") from exc
    return digest.hexdigest()
