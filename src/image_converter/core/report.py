"""报告生成工具。"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable

from image_converter.core.models import ConversionJob

HEADER = ["source_name", "derived_name", "status", "size_bytes", "message"]


def write_csv_report(jobs: Iterable[ConversionJob], output_dir: Path, filename: str) -> Path:
    """将每个任务的处理结果写入 CSV 报告，作为逐文件错误原因的诊断渠道。"""

    report_path = output_dir / filename
    with report_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(HEADER)
        for job in jobs:
            artifact = job.artifact
            writer.writerow(
                [
                    job.source.name,
                    artifact.derived_name if artifact else "",
                    job.status.value,
                    _format_size(artifact.size_bytes if artifact else None),
                    job.error or "",
                ]
            )
    return report_path


def _format_size(value: int | None) -> str:
    if value is None:
        return ""
    return str(value)
