"""资源文件扫描与筛选逻辑。"""

from __future__ import annotations

import glob
import logging
from pathlib import Path
from typing import Iterable, Optional, Sequence

from asset_optimizer.core.config import OptimizationOptions
from asset_optimizer.core.models import AssetSelection
from asset_optimizer.core.project_config import read_asset_bundle_patterns

LOGGER = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png"}
DEFAULT_PATTERNS = ("**/*",)
IGNORED_DIRECTORIES = {"node_modules", "ios", "android"}


def _is_ignored(relative: str) -> bool:
    parents = Path(relative).parts[:-1]
    return any(part in IGNORED_DIRECTORIES for part in parents)


def expand_pattern(project_root: Path, pattern: str) -> set[Path]:
    """相对项目根目录展开单个 glob 模式，忽略依赖与平台构建目录。

    返回拼接根目录后的路径，便于按路径相等做集合运算。
    """

    matches = glob.glob(pattern, root_dir=str(project_root), recursive=True)
    return {project_root / match for match in matches if not _is_ignored(match)}


def _filter_images(files: Iterable[Path]) -> list[Path]:
    """只保留支持的图片类型（扩展名不区分大小写）。"""

    images = [path for path in files if path.suffix.lower() in IMAGE_EXTENSIONS]
    images.sort(key=lambda x: str(x).lower())
    return images


def select_asset_files(
    project_root: Path,
    options: OptimizationOptions,
    patterns: Optional[Sequence[str]] = None,
) -> AssetSelection:
    """根据打包模式与 include/exclude 选项计算候选图片集合。

    ``all_files`` 无论是否传入过滤选项都会完整计算，优化记录需要覆盖所有
    可打包资源。``include`` 存在时选中集合只取其展开结果，不与
    ``all_files`` 求交集。
    """

    root = Path(project_root).resolve()
    if patterns is None:
        patterns = read_asset_bundle_patterns(root)
    patterns = list(patterns) or list(DEFAULT_PATTERNS)

    all_files: set[Path] = set()
    for pattern in patterns:
        all_files |= expand_pattern(root, pattern)

    if options.include:
        selected = expand_pattern(root, options.include)
    else:
        selected = set(all_files)

    if options.exclude:
        selected -= expand_pattern(root, options.exclude)

    selection = AssetSelection(
        all_files=_filter_images(all_files),
        selected_files=_filter_images(selected),
    )
    LOGGER.debug(
        "发现 %d 个可打包图片，选中 %d 个",
        len(selection.all_files),
        len(selection.selected_files),
    )
    return selection
