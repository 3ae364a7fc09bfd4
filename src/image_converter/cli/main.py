"""命令行入口。"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List

import typer
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from image_converter.core.config import DEFAULT_JPEG_QUALITY, MAX_BATCH_SIZE, ConversionRequest, OutputConfig, OutputFormat
from image_converter.core.exceptions import BundleError, ImageConverterError, InvalidConfigurationError
from image_converter.core.output_manager import CONFLICT_STRATEGIES, OutputManager
from image_converter.core.progress import BatchProgress
from image_converter.core.report import write_csv_report
from image_converter.core.scanner import collect_source_files
from image_converter.processing.session import ConversionSession
from image_converter.utils.formatting import format_bytes
from image_converter.utils.logging import setup_logging

app = typer.Typer(help="批量图片格式转换工具：JPEG / PNG / WEBP / BMP / GIF。")


def _parse_format(value: str) -> OutputFormat:
    try:
        return OutputFormat.parse(value)
    except InvalidConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _build_progress_callback(progress: Progress, task_id):
    def callback(update: BatchProgress) -> None:
        progress.update(task_id, completed=update.completed, description=update.label)

    return callback


@app.command("formats")
def list_formats() -> None:
    """列出支持的目标格式。"""

    for fmt in OutputFormat:
        typer.echo(f"{fmt.name.lower():<5} .{fmt.extension:<5} {fmt.mime_type}")


@app.command("convert")
def convert_cli(  # noqa: PLR0913
    source: List[Path] = typer.Argument(..., help="源图片文件或目录，可指定多个"),
    output: Path = typer.Option(..., "--output", "-o", help="输出目录"),
    target_format: str = typer.Option("jpeg", "--format", "-f", help="目标格式 jpeg/png/webp/bmp/gif"),
    quality: int = typer.Option(DEFAULT_JPEG_QUALITY, "--quality", "-q", min=0, max=100, help="JPEG 质量 0~100"),
    write_bundle: bool = typer.Option(True, "--zip/--no-zip", help="是否额外生成 ZIP 压缩包"),
    write_report: bool = typer.Option(True, "--report/--no-report", help="是否生成 CSV 报告"),
    allow_recursive: bool = typer.Option(True, "--recursive/--no-recursive", help="是否递归扫描目录"),
    conflict_strategy: str = typer.Option("rename", "--on-conflict", help="文件名冲突策略 rename/overwrite/skip"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
) -> None:
    """执行批量转换。"""

    setup_logging(logging.DEBUG if verbose else logging.WARNING)

    fmt = _parse_format(target_format)
    if conflict_strategy not in CONFLICT_STRATEGIES:
        raise typer.BadParameter(f"未知的冲突策略: {conflict_strategy}", param_hint="--on-conflict")
    request = ConversionRequest(target_format=fmt, quality=quality)

    output_config = OutputConfig(
        output_dir=output.expanduser().resolve(),
        conflict_strategy=conflict_strategy,
        write_bundle=write_bundle,
        write_report=write_report,
    )

    candidates = collect_source_files([p.expanduser() for p in source], recursive=allow_recursive)

    with ConversionSession() as session:
        admission = session.add_files(candidates)
        if admission.unsupported_count:
            typer.echo(f"忽略 {admission.unsupported_count} 个不支持的文件。", err=True)
        if admission.overflow is not None:
            typer.echo(f"{admission.overflow}（上限 {MAX_BATCH_SIZE}）", err=True)
        if not session.files:
            typer.echo("没有可转换的图片。", err=True)
            raise typer.Exit(code=1)

        progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TimeElapsedColumn(),
        )
        with progress:
            task_id = progress.add_task(BatchProgress(0, len(session.files)).label, total=len(session.files))
            unsubscribe = session.runner.subscribe(_build_progress_callback(progress, task_id))
            try:
                result = asyncio.run(session.convert(request))
            finally:
                unsubscribe()

        manager = OutputManager(output_config)
        for artifact in result.artifacts:
            decision = manager.write(artifact.derived_name, artifact.read())
            if decision.action == "skip":
                typer.echo(f"跳过 {artifact.derived_name}（目标已存在）")
                continue
            typer.echo(f"{decision.destination.name} ({format_bytes(artifact.size_bytes)})")

        if output_config.write_bundle and result.artifacts:
            try:
                bundle = asyncio.run(session.bundle())
            except BundleError:
                typer.echo(session.error, err=True)
            else:
                decision = manager.write(bundle.filename, bundle.data)
                if decision.action == "skip":
                    typer.echo(f"跳过 {bundle.filename}（目标已存在）")
                else:
                    typer.echo(f"压缩包：{decision.destination} ({format_bytes(bundle.size_bytes)})")

        if output_config.write_report:
            try:
                report_path = write_csv_report(result.jobs, manager.output_dir, output_config.report_filename)
            except OSError as exc:
                logging.getLogger(__name__).error("写入报告失败：%s", exc)
            else:
                typer.echo(f"报告文件：{report_path}")

    typer.echo(f"转换完成：成功 {len(result.artifacts)} 个，失败 {len(result.failures)} 个。")
    if result.summary:
        typer.echo(result.summary, err=True)
    if not result.artifacts:
        raise typer.Exit(code=1)


def main() -> None:
    try:
        app()
    except ImageConverterError as exc:
        typer.echo(f"错误：{exc}", err=True)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
