"""命令行端到端测试。"""

from __future__ import annotations

import csv
from pathlib import Path
from zipfile import ZipFile

from PIL import Image
from typer.testing import CliRunner

from image_converter.cli.main import app
from image_converter.core import bundler

runner = CliRunner()


def _prepare_inputs(tmp_path: Path) -> Path:
    source = tmp_path / "input"
    source.mkdir()
    Image.new("RGB", (30, 20), "blue").save(source / "one.png")
    Image.new("RGB", (10, 40), "white").save(source / "two.bmp")
    (source / "broken.jpg").write_text("not an image")
    (source / "notes.txt").write_text("hello")
    return source


def test_convert_writes_outputs_bundle_and_report(tmp_path: Path) -> None:
    source = _prepare_inputs(tmp_path)
    output = tmp_path / "output"

    result = runner.invoke(app, ["convert", str(source), "-o", str(output), "-f", "webp"])

    assert result.exit_code == 0, result.output
    assert "Completed with 1 error(s)" in result.output

    assert (output / "converted-one.webp").exists()
    assert (output / "converted-two.webp").exists()
    with Image.open(output / "converted-two.webp") as converted:
        assert converted.size == (10, 40)

    bundles = list(output.glob("converted_images_*.zip"))
    assert len(bundles) == 1
    with ZipFile(bundles[0]) as archive:
        assert sorted(archive.namelist()) == ["converted-one.webp", "converted-two.webp"]

    with (output / "report.csv").open("r", encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))
    statuses = {row["source_name"]: row["status"] for row in rows}
    assert statuses == {"broken.jpg": "failed", "one.png": "succeeded", "two.bmp": "succeeded"}
    failed_row = next(row for row in rows if row["status"] == "failed")
    assert "broken.jpg" in failed_row["message"]


def test_convert_renames_on_conflict(tmp_path: Path) -> None:
    source = _prepare_inputs(tmp_path)
    output = tmp_path / "output"
    output.mkdir()
    (output / "converted-one.gif").write_bytes(b"existing")

    result = runner.invoke(
        app,
        ["convert", str(source / "one.png"), "-o", str(output), "-f", "gif", "--no-zip", "--no-report"],
    )

    assert result.exit_code == 0, result.output
    assert (output / "converted-one.gif").read_bytes() == b"existing"
    assert (output / "converted-one_1.gif").exists()
    assert not list(output.glob("*.zip"))
    assert not (output / "report.csv").exists()


def test_convert_fails_when_every_job_fails(tmp_path: Path) -> None:
    source = tmp_path / "input"
    source.mkdir()
    (source / "bad.png").write_text("nope")

    result = runner.invoke(app, ["convert", str(source), "-o", str(tmp_path / "out"), "--no-zip"])

    assert result.exit_code == 1


def test_convert_rejects_unknown_format(tmp_path: Path) -> None:
    source = _prepare_inputs(tmp_path)

    result = runner.invoke(app, ["convert", str(source), "-o", str(tmp_path / "out"), "-f", "tiff"])

    assert result.exit_code != 0


def test_formats_lists_all_targets() -> None:
    result = runner.invoke(app, ["formats"])

    assert result.exit_code == 0
    for name in ("jpeg", "png", "webp", "bmp", "gif"):
        assert name in result.output


def test_convert_reports_skipped_bundle(tmp_path: Path, monkeypatch) -> None:
    source = _prepare_inputs(tmp_path)
    output = tmp_path / "output"
    output.mkdir()
    (output / "converted_images_1.zip").write_bytes(b"existing")
    monkeypatch.setattr(bundler, "bundle_filename", lambda timestamp_ms=None: "converted_images_1.zip")

    result = runner.invoke(
        app,
        ["convert", str(source / "one.png"), "-o", str(output), "-f", "png", "--on-conflict", "skip", "--no-report"],
    )

    assert result.exit_code == 0, result.output
    assert "跳过 converted_images_1.zip" in result.output
    assert "压缩包" not in result.output
    assert (output / "converted_images_1.zip").read_bytes() == b"existing"
