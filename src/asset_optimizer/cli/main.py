"""命令行入口。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

from asset_optimizer.core.config import DEFAULT_QUALITY, OptimizationOptions
from asset_optimizer.core.exceptions import InvalidConfigurationError, ManifestError
from asset_optimizer.core.progress import ProgressUpdate
from asset_optimizer.core.report import write_csv_report
from asset_optimizer.processing.engine import has_unoptimized_assets, optimize_assets, restore_originals
from asset_optimizer.utils.logging import setup_logging

app = typer.Typer(help="项目图片资源压缩与优化记录管理工具。")


def _build_progress_callback(progress: Progress):
    task_id: Optional[int] = None

    def callback(update: ProgressUpdate) -> None:
        nonlocal task_id
        if update.total == 0:
            return
        if task_id is None:
            task_id = progress.add_task("优化图片", total=update.total)
        progress.update(task_id, completed=update.completed)

    return callback


def _resolve_project(project: Path) -> Path:
    root = project.expanduser().resolve()
    if not root.is_dir():
        raise typer.BadParameter(f"项目目录不存在: {root}")
    return root


@app.command("optimize")
def optimize_cli(  # noqa: PLR0913
    project: Path = typer.Argument(Path("."), help="项目根目录"),
    quality: int = typer.Option(DEFAULT_QUALITY, "--quality", "-q", help="压缩质量，1~100"),
    include: Optional[str] = typer.Option(None, "--include", help="只优化匹配该 glob 的文件"),
    exclude: Optional[str] = typer.Option(None, "--exclude", help="排除匹配该 glob 的文件"),
    save: bool = typer.Option(True, "--save/--no-save", help="是否写回优化记录"),
    max_workers: int = typer.Option(4, "--workers", "-w", help="并发线程数量"),
    min_ssim: Optional[float] = typer.Option(None, "--min-ssim", help="低于该 SSIM 时保留原图"),
    report: Optional[Path] = typer.Option(None, "--report", help="CSV 报告输出路径"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
) -> None:
    """压缩尚未优化的图片并更新优化记录。"""

    setup_logging(logging.DEBUG if verbose else logging.INFO)
    root = _resolve_project(project)

    options = OptimizationOptions(
        quality=quality,
        include=include,
        exclude=exclude,
        save=save,
        max_workers=max_workers,
        min_ssim=min_ssim,
    )

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TimeElapsedColumn(),
        TimeRemainingColumn(),
    )

    try:
        with progress:
            result = optimize_assets(root, options, progress_callback=_build_progress_callback(progress))
    except InvalidConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except ManifestError as exc:
        typer.echo(f"优化记录错误：{exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(
        f"优化完成：成功 {len(result.optimized)} 张，跳过 {len(result.skipped)} 张，"
        f"失败 {len(result.failed)} 张，共节省 {result.saved_bytes / 1024:.1f} KB。"
    )
    for outcome in result.failed:
        typer.echo(f"  [{outcome.status}] {outcome.message}", err=True)
    if result.stale_digests:
        typer.echo(f"记录中有 {len(result.stale_digests)} 条摘要已找不到对应文件。")

    if report:
        report_path = write_csv_report(result.all_outcomes(), report.expanduser().resolve())
        typer.echo(f"报告文件：{report_path}")

    if result.failed:
        raise typer.Exit(code=1)


@app.command("check")
def check_cli(
    project: Path = typer.Argument(Path("."), help="项目根目录"),
    include: Optional[str] = typer.Option(None, "--include", help="只检查匹配该 glob 的文件"),
    exclude: Optional[str] = typer.Option(None, "--exclude", help="排除匹配该 glob 的文件"),
) -> None:
    """检查是否存在未优化的图片，存在时退出码为 1。"""

    setup_logging(logging.WARNING)
    root = _resolve_project(project)
    options = OptimizationOptions(include=include, exclude=exclude)

    try:
        pending = has_unoptimized_assets(root, options)
    except InvalidConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except ManifestError as exc:
        typer.echo(f"优化记录错误：{exc}", err=True)
        raise typer.Exit(code=2) from exc

    if pending:
        typer.echo("存在未优化的图片资源。")
        raise typer.Exit(code=1)
    typer.echo("所有图片资源均已优化。")


@app.command("restore")
def restore_cli(
    project: Path = typer.Argument(Path("."), help="项目根目录"),
    include: Optional[str] = typer.Option(None, "--include", help="只恢复匹配该 glob 的文件"),
    exclude: Optional[str] = typer.Option(None, "--exclude", help="排除匹配该 glob 的文件"),
) -> None:
    """用最近一次的 .orig 备份恢复原图，有失败时退出码为 1。"""

    setup_logging()
    root = _resolve_project(project)
    options = OptimizationOptions(include=include, exclude=exclude)

    try:
        result = restore_originals(root, options)
    except InvalidConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc

    typer.echo(f"已恢复 {len(result.restored)} 张原图，失败 {len(result.failed)} 张。")
    for outcome in result.failed:
        typer.echo(f"  [{outcome.status}] {outcome.message}", err=True)

    if result.failed:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
