"""优化任务的配置模型。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

DEFAULT_QUALITY = 80
MAX_QUALITY = 100


@dataclass(slots=True)
class OptimizationOptions:
    """单次优化任务的配置集合。

    ``include`` 指定时只处理该 glob 匹配的文件；``exclude`` 指定时从选中集合
    中剔除其匹配项；``save`` 为 False 时不写回优化记录。
    """

    quality: int = DEFAULT_QUALITY
    include: Optional[str] = None
    exclude: Optional[str] = None
    save: bool = True
    max_workers: int = 4
    min_ssim: Optional[float] = None  # 为 None 时不做质量校验
