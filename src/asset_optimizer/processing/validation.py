"""重压缩质量校验指标。"""

from __future__ import annotations

from pathlib import Path
from typing import Tuple

import numpy as np
from PIL import Image


def compute_ssim(original: Image.Image, processed: Image.Image) -> float:
    """计算两张图片的结构相似度（SSIM）。"""

    size = processed.size
    if size[0] <= 0 or size[1] <= 0:
        return 0.0

    img_a = _to_gray_array(original, size)
    img_b = _to_gray_array(processed, size)

    mu_a = img_a.mean()
    mu_b = img_b.mean()
    sigma_a_sq = ((img_a - mu_a) ** 2).mean()
    sigma_b_sq = ((img_b - mu_b) ** 2).mean()
    sigma_ab = ((img_a - mu_a) * (img_b - mu_b)).mean()

    c1 = (0.01 * 255) ** 2
    c2 = (0.03 * 255) ** 2

    numerator = (2 * mu_a * mu_b + c1) * (2 * sigma_ab + c2)
    denominator = (mu_a**2 + mu_b**2 + c1) * (sigma_a_sq + sigma_b_sq + c2)
    if denominator == 0:
        return 0.0

    value = numerator / denominator
    # Clamp to [-1, 1] to avoid slight numeric drift.
    return float(max(min(value, 1.0), -1.0))


def compute_file_ssim(original_path: Path, processed_path: Path) -> float:
    """打开两个文件并计算 SSIM。"""

    with Image.open(original_path) as original, Image.open(processed_path) as processed:
        return compute_ssim(original, processed)


def _to_gray_array(image: Image.Image, size: Tuple[int, int]) -> np.ndarray:
    """转换图片为指定尺寸的灰度数组。"""

    gray = image.convert("L")
    if gray.size != size:
        gray = gray.resize(size, Image.LANCZOS)
    return np.asarray(gray, dtype=np.float32)
