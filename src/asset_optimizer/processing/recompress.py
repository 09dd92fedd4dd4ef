"""图片重压缩实现与备份文件命名。"""

from __future__ import annotations

import logging
from itertools import count
from pathlib import Path
from typing import Callable, Optional

from PIL import Image, UnidentifiedImageError

from asset_optimizer.core.exceptions import RecompressionError

LOGGER = logging.getLogger(__name__)

BACKUP_MARKER = ".orig"

SUPPORTED_FORMATS = {
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".png": "PNG",
}

# (input_path, output_dir, quality) -> 重压缩后的文件路径
Recompressor = Callable[[Path, Path, int], Path]


def create_new_filename(image_path: Path | str) -> Path:
    """在扩展名前插入 ``.orig``，得到原图备份路径。"""

    path = Path(image_path)
    return path.with_name(f"{path.stem}{BACKUP_MARKER}{path.suffix}")


def is_backup_file(path: Path) -> bool:
    """判断文件是否为 ``create_new_filename`` 生成的备份。"""

    return Path(path.stem).suffix == BACKUP_MARKER


def _numbered_backup(image_path: Path, index: int) -> Path:
    return image_path.with_name(f"{image_path.stem}.{index}{BACKUP_MARKER}{image_path.suffix}")


def next_backup_path(image_path: Path) -> Path:
    """返回下一个可用的备份路径。

    ``photo.orig.png`` 一旦存在就不再覆盖，之后的备份依次命名为
    ``photo.1.orig.png``、``photo.2.orig.png`` ……
    """

    backup = create_new_filename(image_path)
    if not backup.exists():
        return backup

    for idx in count(1):
        candidate = _numbered_backup(image_path, idx)
        if not candidate.exists():
            return candidate

    # 理论上不会执行到此处
    return backup


def latest_backup(image_path: Path) -> Optional[Path]:
    """返回最近一次优化前的备份，没有备份时返回 None。"""

    latest = create_new_filename(image_path)
    if not latest.is_file():
        return None

    for idx in count(1):
        candidate = _numbered_backup(image_path, idx)
        if not candidate.is_file():
            return latest
        latest = candidate

    return latest


def recompress_image(input_path: Path, output_dir: Path, quality: int) -> Path:
    """使用 Pillow 重新编码图片，输出到 ``output_dir`` 下的同名文件。

    JPEG 按 ``quality`` 有损压缩并保留 EXIF/ICC；PNG 在 quality 小于 100 时
    先量化为 256 色调色板，再以最高压缩级别无损写出。
    """

    suffix = input_path.suffix.lower()
    image_format = SUPPORTED_FORMATS.get(suffix)
    if not image_format:
        raise RecompressionError(f"不支持的图片格式: {input_path}")

    output_path = Path(output_dir) / input_path.name
    LOGGER.info("正在优化 %s", input_path)

    try:
        with Image.open(input_path) as img:
            img.load()
            if image_format == "JPEG":
                _save_jpeg(img, output_path, quality)
            else:
                _save_png(img, output_path, quality)
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise RecompressionError(f"重压缩失败: {input_path}: {exc}") from exc

    return output_path


def _save_jpeg(img: Image.Image, destination: Path, quality: int) -> None:
    save_params = {"optimize": True, "progressive": True, "quality": quality}
    exif = img.info.get("exif")
    if exif:
        save_params["exif"] = exif
    icc_profile = img.info.get("icc_profile")
    if icc_profile:
        save_params["icc_profile"] = icc_profile

    image_to_save = img
    if img.mode not in {"RGB", "L", "CMYK"}:
        image_to_save = img.convert("RGB")
    image_to_save.save(destination, format="JPEG", **save_params)


def _save_png(img: Image.Image, destination: Path, quality: int) -> None:
    image_to_save = img
    if quality < 100 and img.mode != "P":
        if img.mode not in {"RGB", "RGBA"}:
            image_to_save = img.convert("RGBA")
        image_to_save = image_to_save.quantize(colors=256, method=Image.Quantize.FASTOCTREE)
    image_to_save.save(destination, format="PNG", optimize=True, compress_level=9)
