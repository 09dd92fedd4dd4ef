"""报告生成工具。"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable, Optional

from asset_optimizer.core.models import FileOutcome

HEADER = [
    "source_path",
    "status",
    "digest",
    "new_digest",
    "bytes_before",
    "bytes_after",
    "ssim",
    "message",
]


def write_csv_report(outcomes: Iterable[FileOutcome], report_path: Path) -> Path:
    """将处理结果写入 CSV 报告。"""

    report_path.parent.mkdir(parents=True, exist_ok=True)
    with report_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(HEADER)
        for record in outcomes:
            writer.writerow(
                [
                    str(record.source_path),
                    record.status,
                    record.digest or "",
                    record.new_digest or "",
                    _format_int(record.bytes_before),
                    _format_int(record.bytes_after),
                    _format_ssim(record.ssim),
                    record.message or "",
                ]
            )
    return report_path


def _format_int(value: Optional[int]) -> str:
    if value is None:
        return ""
    return str(value)


def _format_ssim(value: float | None) -> str:
    if value is None:
        return ""
    return f"{value:.6f}"
