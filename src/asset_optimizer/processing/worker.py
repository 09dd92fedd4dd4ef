"""并发处理的工作单元。"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from asset_optimizer.core.hashing import calculate_hash
from asset_optimizer.core.models import FileOutcome
from asset_optimizer.processing.recompress import Recompressor, latest_backup, next_backup_path
from asset_optimizer.processing.validation import compute_file_ssim

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class OptimizationTask:
    """描述单个图片的优化任务。"""

    source_path: Path
    digest: str
    quality: int
    recompressor: Recompressor
    work_dir: Path
    min_ssim: Optional[float] = None


def run_task(task: OptimizationTask) -> FileOutcome:
    """重压缩单个文件，成功时备份原图并替换为压缩结果。

    压缩结果不比原图小或未通过 SSIM 校验时保留原图，同样视为已优化。已有的
    备份从不覆盖：当前文件若正是此前对最新备份的压缩结果（例如 save=False 的
    旧运行），只替换工作文件；否则（如用户修改过文件）另存为编号备份。
    """

    source = task.source_path
    try:
        bytes_before = source.stat().st_size
    except OSError as exc:
        return _failure(task, "error-recompress", f"无法读取文件大小: {exc}")

    output_dir = Path(tempfile.mkdtemp(dir=task.work_dir))
    try:
        optimized = Path(task.recompressor(source, output_dir, task.quality))
        bytes_after = optimized.stat().st_size
    except Exception as exc:  # noqa: BLE001
        return _failure(task, "error-recompress", f"重压缩失败: {exc}", bytes_before=bytes_before)

    outcome = FileOutcome(
        source_path=source,
        status="optimized",
        digest=task.digest,
        bytes_before=bytes_before,
        bytes_after=bytes_after,
    )

    if bytes_after >= bytes_before:
        outcome.status = "skip-larger"
        outcome.new_digest = task.digest
        outcome.message = "压缩结果不小于原图，保留原图"
        return outcome

    if task.min_ssim is not None:
        try:
            outcome.ssim = compute_file_ssim(source, optimized)
        except OSError as exc:
            return _failure(task, "error-recompress", f"质量校验失败: {exc}", bytes_before=bytes_before)
        if outcome.ssim < task.min_ssim:
            outcome.status = "skip-quality"
            outcome.new_digest = task.digest
            outcome.message = f"SSIM {outcome.ssim:.4f} 低于阈值 {task.min_ssim}，保留原图"
            return outcome

    previous = latest_backup(source)
    backup: Optional[Path]
    if previous is not None and _is_previous_output(task, previous):
        backup = None
        note = f"当前文件由 {previous.name} 压缩而来，保留已有备份"
    else:
        backup = next_backup_path(source)
        note = f"原图已备份为 {backup.name}"

    try:
        if backup is not None:
            os.replace(source, backup)
        shutil.move(str(optimized), str(source))
        outcome.new_digest = calculate_hash(source)
    except OSError as exc:
        if backup is not None and backup.exists() and not source.exists():
            os.replace(backup, source)
        return _failure(task, "error-replace", f"替换文件失败: {exc}", bytes_before=bytes_before)

    outcome.message = note
    return outcome


def _is_previous_output(task: OptimizationTask, backup: Path) -> bool:
    """判断当前文件是否为此前对 ``backup`` 的压缩结果（未写入记录的旧运行）。

    以相同参数重新压缩备份并比对摘要；无法判断时返回 False，由调用方另存新备份。
    """

    check_dir = Path(tempfile.mkdtemp(dir=task.work_dir))
    try:
        reencoded = Path(task.recompressor(backup, check_dir, task.quality))
        return calculate_hash(reencoded) == task.digest
    except Exception as exc:  # noqa: BLE001
        LOGGER.debug("无法比对已有备份 %s: %s", backup, exc)
        return False


def _failure(task: OptimizationTask, status: str, message: str, bytes_before: Optional[int] = None) -> FileOutcome:
    return FileOutcome(
        source_path=task.source_path,
        status=status,
        digest=task.digest,
        bytes_before=bytes_before,
        message=f"{task.source_path}: {message}",
    )
