"""环节五：测试命令行入口、CSV 报告与参数校验。"""

from __future__ import annotations

import csv
from pathlib import Path

import pytest
from PIL import Image
from typer.testing import CliRunner

from asset_optimizer.cli.main import app
from asset_optimizer.core.config import OptimizationOptions
from asset_optimizer.core.exceptions import InvalidConfigurationError
from asset_optimizer.core.manifest import manifest_path
from asset_optimizer.core.models import FileOutcome
from asset_optimizer.core.report import HEADER, write_csv_report
from asset_optimizer.processing.engine import optimize_assets

runner = CliRunner()


def make_photo(path: Path) -> Path:
    Image.effect_noise((96, 96), 80).convert("RGB").save(path, quality=100)
    return path


def test_check_reports_pending_without_manifest(tmp_path: Path) -> None:
    result = runner.invoke(app, ["check", str(tmp_path)])

    assert result.exit_code == 1
    assert not manifest_path(tmp_path).exists()


def test_optimize_then_check_is_clean(tmp_path: Path) -> None:
    make_photo(tmp_path / "photo.jpg")
    report_path = tmp_path / "out" / "report.csv"

    result = runner.invoke(
        app,
        ["optimize", str(tmp_path), "--quality", "50", "--workers", "1", "--report", str(report_path)],
    )

    assert result.exit_code == 0, result.output
    assert manifest_path(tmp_path).exists()
    assert (tmp_path / "photo.orig.jpg").exists()
    assert report_path.exists()

    check = runner.invoke(app, ["check", str(tmp_path)])
    assert check.exit_code == 0


def test_check_corrupt_manifest_exits_with_error(tmp_path: Path) -> None:
    path = manifest_path(tmp_path)
    path.parent.mkdir()
    path.write_text("not json")

    result = runner.invoke(app, ["check", str(tmp_path)])

    assert result.exit_code == 2


def test_restore_command(tmp_path: Path) -> None:
    photo = make_photo(tmp_path / "photo.jpg")
    original = photo.read_bytes()
    runner.invoke(app, ["optimize", str(tmp_path), "--quality", "50", "--workers", "1"])

    result = runner.invoke(app, ["restore", str(tmp_path)])

    assert result.exit_code == 0
    assert photo.read_bytes() == original


def test_restore_command_exits_with_error_on_failure(tmp_path: Path) -> None:
    make_photo(tmp_path / "a.orig.jpg")
    (tmp_path / "a.jpg").mkdir()

    result = runner.invoke(app, ["restore", str(tmp_path)])

    assert result.exit_code == 1
    assert (tmp_path / "a.orig.jpg").exists()


def test_invalid_options_are_rejected(tmp_path: Path) -> None:
    with pytest.raises(InvalidConfigurationError):
        optimize_assets(tmp_path, OptimizationOptions(quality=0))
    with pytest.raises(InvalidConfigurationError):
        optimize_assets(tmp_path, OptimizationOptions(quality=101))
    with pytest.raises(InvalidConfigurationError):
        optimize_assets(tmp_path, OptimizationOptions(max_workers=0))

    result = runner.invoke(app, ["optimize", str(tmp_path), "--quality", "0"])
    assert result.exit_code == 2
    result = runner.invoke(app, ["optimize", str(tmp_path), "--quality", "101"])
    assert result.exit_code == 2


def test_csv_report_contents(tmp_path: Path) -> None:
    outcomes = [
        FileOutcome(
            source_path=tmp_path / "a.png",
            status="optimized",
            digest="a" * 64,
            new_digest="b" * 64,
            bytes_before=100,
            bytes_after=40,
            ssim=0.987654321,
        ),
        FileOutcome(source_path=tmp_path / "b.png", status="error-recompress", message="boom"),
    ]

    path = write_csv_report(outcomes, tmp_path / "report.csv")

    with path.open("r", encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))
    assert list(rows[0].keys()) == HEADER
    assert rows[0]["bytes_after"] == "40"
    assert rows[0]["ssim"] == "0.987654"
    assert rows[1]["status"] == "error-recompress"
    assert rows[1]["digest"] == ""
    assert rows[1]["message"] == "boom"
