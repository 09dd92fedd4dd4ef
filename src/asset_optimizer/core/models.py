"""核心数据模型定义。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# 优化记录：内容摘要 -> 是否已优化
AssetRecord = dict[str, bool]


@dataclass(slots=True)
class AssetSelection:
    """扫描阶段得到的候选资源集合。

    ``all_files`` 始终包含全部可打包图片，``selected_files`` 是经过
    include/exclude 过滤后本次实际处理的子集。
    """

    all_files: list[Path]
    selected_files: list[Path]


@dataclass(slots=True)
class FileOutcome:
    """记录单个文件的处理结果（用于报告/日志）。"""

    source_path: Path
    status: str
    digest: Optional[str] = None
    new_digest: Optional[str] = None
    bytes_before: Optional[int] = None
    bytes_after: Optional[int] = None
    ssim: Optional[float] = None
    message: Optional[str] = None

    @property
    def saved_bytes(self) -> int:
        if self.bytes_before is None or self.bytes_after is None:
            return 0
        return max(0, self.bytes_before - self.bytes_after)


@dataclass(slots=True)
class OptimizationReport:
    """一次优化运行的汇总结果。"""

    optimized: list[FileOutcome] = field(default_factory=list)
    skipped: list[FileOutcome] = field(default_factory=list)
    failed: list[FileOutcome] = field(default_factory=list)
    stale_digests: list[str] = field(default_factory=list)
    manifest_written: bool = False

    @property
    def saved_bytes(self) -> int:
        return sum(outcome.saved_bytes for outcome in self.optimized)

    def all_outcomes(self) -> list[FileOutcome]:
        """返回所有结果记录，方便生成报告。"""

        return [*self.optimized, *self.skipped, *self.failed]


@dataclass(slots=True)
class RestoreReport:
    """一次原图恢复的结果。"""

    restored: list[Path] = field(default_factory=list)
    failed: list[FileOutcome] = field(default_factory=list)
