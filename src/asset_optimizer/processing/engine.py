"""优化引擎：扫描资源、计算摘要、重压缩未记录的图片并写回优化记录。"""

from __future__ import annotations

import logging
import os
import tempfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

from asset_optimizer.core.config import MAX_QUALITY, OptimizationOptions
from asset_optimizer.core.exceptions import AssetReadError, InvalidConfigurationError
from asset_optimizer.core.hashing import calculate_hash
from asset_optimizer.core.manifest import (
    MANIFEST_DIRNAME,
    MANIFEST_FILENAME,
    ManifestCreatedCallback,
    load_manifest,
    read_manifest,
    save_manifest,
)
from asset_optimizer.core.models import AssetRecord, FileOutcome, OptimizationReport, RestoreReport
from asset_optimizer.core.progress import ProgressUpdate
from asset_optimizer.core.scanner import select_asset_files
from asset_optimizer.processing.recompress import (
    Recompressor,
    is_backup_file,
    latest_backup,
    recompress_image,
)
from asset_optimizer.processing.worker import OptimizationTask, run_task

LOGGER = logging.getLogger(__name__)

ProgressCallback = Optional[Callable[[ProgressUpdate], None]]

RECORDED_STATUSES = {"optimized", "skip-larger", "skip-quality"}


def log_manifest_created(path: Path) -> None:
    """首次创建优化记录时的默认提示。"""

    LOGGER.info(
        "正在项目根目录创建 %s/%s。该文件自动生成，请勿手动编辑；"
        "请将其提交到 git，以便协作者共享资源优化状态。(%s)",
        MANIFEST_DIRNAME,
        MANIFEST_FILENAME,
        path,
    )


def has_unoptimized_assets(
    project_root: Path,
    options: Optional[OptimizationOptions] = None,
    patterns: Optional[Sequence[str]] = None,
) -> bool:
    """判断是否存在尚未优化的资源，不做任何写入。

    优化记录不存在时直接返回 True；否则逐个计算选中文件的摘要，遇到第一个
    未记录的摘要即返回。
    """

    options = options or OptimizationOptions()
    root = Path(project_root).resolve()

    record = read_manifest(root)
    if record is None:
        return True

    selection = select_asset_files(root, options, patterns)
    for path in selection.selected_files:
        if is_backup_file(path):
            continue
        try:
            digest = calculate_hash(path)
        except AssetReadError as exc:
            LOGGER.warning("无法计算摘要，视为待优化：%s", exc)
            return True
        if not record.get(digest):
            LOGGER.debug("发现未优化资源：%s", path)
            return True
    return False


def optimize_assets(
    project_root: Path,
    options: Optional[OptimizationOptions] = None,
    *,
    recompressor: Recompressor = recompress_image,
    patterns: Optional[Sequence[str]] = None,
    progress_callback: ProgressCallback = None,
    on_manifest_created: ManifestCreatedCallback = log_manifest_created,
) -> OptimizationReport:
    """优化入口：扫描、计算摘要、并发重压缩未记录的图片并写回记录。

    单个文件失败不会中断整批任务，失败信息收集在报告中；记录只在全部文件
    处理结束后写回一次。
    """

    options = options or OptimizationOptions()
    _validate_options(options)
    root = Path(project_root).resolve()

    LOGGER.info("开始扫描项目资源：%s", root)
    selection = select_asset_files(root, options, patterns)
    handle, record = load_manifest(root, on_created=on_manifest_created)

    candidates = [path for path in selection.selected_files if not is_backup_file(path)]
    total = len(candidates)
    LOGGER.info("发现 %d 个可打包图片，选中 %d 个", len(selection.all_files), total)

    report = OptimizationReport()
    digests, hash_errors = _hash_files(sorted({*selection.all_files, *candidates}), options.max_workers)
    report.stale_digests = _find_stale_digests(record, (digests.get(path) for path in selection.all_files))

    completed = 0
    changed = False
    tasks: list[OptimizationTask] = []

    with tempfile.TemporaryDirectory(prefix="asset-optimizer-") as work_dir:
        for path in candidates:
            if path in hash_errors:
                report.failed.append(
                    FileOutcome(source_path=path, status="error-hash", message=hash_errors[path])
                )
                completed += 1
                _emit_progress(progress_callback, completed, total, f"无法读取 {path.name}")
                continue

            digest = digests[path]
            if record.get(digest):
                report.skipped.append(FileOutcome(source_path=path, status="skip-recorded", digest=digest))
                completed += 1
                _emit_progress(progress_callback, completed, total, f"已优化 {path.name}")
                continue

            tasks.append(
                OptimizationTask(
                    source_path=path,
                    digest=digest,
                    quality=options.quality,
                    recompressor=recompressor,
                    work_dir=Path(work_dir),
                    min_ssim=options.min_ssim,
                )
            )

        _emit_progress(progress_callback, completed, total, "开始执行优化任务")

        if options.max_workers <= 1:
            for task in tasks:
                changed |= _record_outcome(run_task(task), record, report)
                completed += 1
                _emit_progress(progress_callback, completed, total, f"完成 {task.source_path.name}")
        elif tasks:
            with ThreadPoolExecutor(max_workers=options.max_workers) as executor:
                future_map = {executor.submit(run_task, task): task for task in tasks}
                for future in as_completed(future_map):
                    task = future_map[future]
                    try:
                        outcome = future.result()
                    except Exception as exc:  # noqa: BLE001
                        LOGGER.exception("任务执行异常：%s", exc)
                        outcome = FileOutcome(
                            source_path=task.source_path,
                            status="error-worker",
                            digest=task.digest,
                            message=str(exc),
                        )
                    changed |= _record_outcome(outcome, record, report)
                    completed += 1
                    _emit_progress(progress_callback, completed, total, f"完成 {task.source_path.name}")

    if changed and options.save:
        save_manifest(handle, record)
        report.manifest_written = True
    elif changed:
        LOGGER.info("未保存优化记录（save=False）")

    for outcome in report.failed:
        LOGGER.error("优化失败 [%s]：%s", outcome.status, outcome.message)

    LOGGER.info(
        "优化完成：成功 %d 个，跳过 %d 个，失败 %d 个，节省 %d 字节",
        len(report.optimized),
        len(report.skipped),
        len(report.failed),
        report.saved_bytes,
    )
    _emit_progress(progress_callback, total, total, "处理完成")
    return report


def restore_originals(
    project_root: Path,
    options: Optional[OptimizationOptions] = None,
    patterns: Optional[Sequence[str]] = None,
) -> RestoreReport:
    """用最近一次的备份覆盖选中的已优化图片。

    单个文件恢复失败不会中断其余文件，失败信息收集在报告中。优化记录保持不变，
    恢复后的文件摘要未被记录，下次运行会重新优化。
    """

    options = options or OptimizationOptions()
    root = Path(project_root).resolve()
    selection = select_asset_files(root, options, patterns)

    report = RestoreReport()
    for path in selection.selected_files:
        if is_backup_file(path):
            continue
        backup = latest_backup(path)
        if backup is None:
            continue
        try:
            os.replace(backup, path)
        except OSError as exc:
            LOGGER.error("恢复原图失败：%s <- %s: %s", path, backup.name, exc)
            report.failed.append(
                FileOutcome(
                    source_path=path,
                    status="error-restore",
                    message=f"{path}: 无法用 {backup.name} 恢复: {exc}",
                )
            )
            continue
        LOGGER.info("已恢复原图：%s", path)
        report.restored.append(path)
    return report


def _validate_options(options: OptimizationOptions) -> None:
    if not 0 < options.quality <= MAX_QUALITY:
        raise InvalidConfigurationError(f"quality 必须位于 1~{MAX_QUALITY}: {options.quality}")
    if options.max_workers < 1:
        raise InvalidConfigurationError(f"max_workers 至少为 1: {options.max_workers}")
    if options.min_ssim is not None and not -1.0 <= options.min_ssim <= 1.0:
        raise InvalidConfigurationError(f"min_ssim 必须位于 [-1, 1]: {options.min_ssim}")


def _hash_files(paths: list[Path], max_workers: int) -> tuple[dict[Path, str], dict[Path, str]]:
    """计算摘要，返回 (成功结果, 失败信息)。"""

    digests: dict[Path, str] = {}
    errors: dict[Path, str] = {}

    if max_workers <= 1:
        for path in paths:
            try:
                digests[path] = calculate_hash(path)
            except AssetReadError as exc:
                errors[path] = str(exc)
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_map = {executor.submit(calculate_hash, path): path for path in paths}
            for future in as_completed(future_map):
                path = future_map[future]
                try:
                    digests[path] = future.result()
                except AssetReadError as exc:
                    errors[path] = str(exc)

    for message in errors.values():
        LOGGER.warning("计算摘要失败：%s", message)
    return digests, errors


def _find_stale_digests(record: AssetRecord, current: Iterable[Optional[str]]) -> list[str]:
    """返回记录中已找不到对应文件的摘要（仅用于报告，不会删除）。"""

    present = {digest for digest in current if digest}
    return sorted(digest for digest in record if digest not in present)


def _record_outcome(outcome: FileOutcome, record: AssetRecord, report: OptimizationReport) -> bool:
    """在主线程中更新记录与报告，返回记录是否发生变化。"""

    new_digest = outcome.new_digest
    if outcome.status not in RECORDED_STATUSES or new_digest is None:
        report.failed.append(outcome)
        return False

    if outcome.status == "optimized":
        report.optimized.append(outcome)
    else:
        report.skipped.append(outcome)

    if record.get(new_digest):
        return False
    record[new_digest] = True
    return True


def _emit_progress(
    callback: ProgressCallback,
    completed: int,
    total: int,
    message: Optional[str] = None,
) -> None:
    if not callback:
        return
    callback(ProgressUpdate(total=total, completed=completed, message=message))
