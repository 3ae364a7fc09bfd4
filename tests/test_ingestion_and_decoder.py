"""测试批次接收上限、文件扫描与解码逻辑。"""

from __future__ import annotations

import io
import os
import struct
import zlib
from pathlib import Path

import pytest
from PIL import Image

from image_converter.core.config import MAX_BATCH_SIZE
from image_converter.core.exceptions import DecodeError
from image_converter.core.ingestion import IngestionGate
from image_converter.core.models import SourceFile
from image_converter.core.scanner import collect_source_files
from image_converter.processing.decoder import decode


def _image_bytes(fmt: str = "PNG", size: tuple[int, int] = (32, 24), mode: str = "RGB", color="blue") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def _noisy_png(size: tuple[int, int] = (64, 64)) -> bytes:
    image = Image.frombytes("RGB", size, os.urandom(size[0] * size[1] * 3))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def _sources(count: int, prefix: str = "img") -> list[SourceFile]:
    return [SourceFile(name=f"{prefix}{idx}.png", data=b"") for idx in range(count)]


def test_gate_admits_everything_under_limit() -> None:
    admission = IngestionGate().admit(_sources(10), already_held=0)

    assert len(admission.accepted) == 10
    assert admission.rejected_count == 0
    assert admission.overflow is None


def test_gate_truncates_to_remaining_capacity() -> None:
    admission = IngestionGate().admit(_sources(20), already_held=40)

    assert len(admission.accepted) == MAX_BATCH_SIZE - 40
    assert admission.rejected_count == 10
    assert [s.name for s in admission.accepted] == [f"img{idx}.png" for idx in range(10)]
    assert admission.overflow is not None
    assert str(admission.overflow) == "Limit of 50 files reached. Only 10 files were added."


def test_gate_admits_nothing_when_full() -> None:
    admission = IngestionGate().admit(_sources(3), already_held=MAX_BATCH_SIZE)

    assert admission.accepted == []
    assert admission.rejected_count == 3


def test_gate_counts_unsupported_files_separately() -> None:
    candidates = [*_sources(2), SourceFile(name="notes.txt", data=b"hello"), SourceFile(name="scan.tiff", data=b"")]

    admission = IngestionGate().admit(candidates)

    assert len(admission.accepted) == 2
    assert admission.unsupported_count == 2
    assert admission.rejected_count == 0


def test_scanner_reads_supported_files(tmp_path: Path) -> None:
    source = tmp_path / "input"
    nested = source / "nested"
    nested.mkdir(parents=True)

    (source / "a.png").write_bytes(_image_bytes("PNG"))
    (nested / "b.gif").write_bytes(_image_bytes("GIF"))
    (source / "notes.txt").write_text("hello")

    collected = collect_source_files([source])
    assert [item.name for item in collected] == ["a.png", "b.gif"]
    assert collected[0].data == (source / "a.png").read_bytes()

    flat = collect_source_files([source], recursive=False)
    assert [item.name for item in flat] == ["a.png"]


def test_decode_returns_surface_dimensions() -> None:
    surface = decode(_image_bytes("JPEG", size=(40, 30)))

    assert (surface.width, surface.height) == (40, 30)
    assert surface.image.mode == "RGB"


def test_decode_keeps_alpha() -> None:
    surface = decode(_image_bytes("PNG", mode="RGBA", color=(255, 0, 0, 128)))

    assert surface.has_alpha


def test_decode_converts_cmyk_to_rgb() -> None:
    surface = decode(_image_bytes("JPEG", mode="CMYK", color=(0, 128, 255, 0)))

    assert surface.image.mode == "RGB"


def test_decode_applies_exif_orientation() -> None:
    image = Image.new("RGB", (80, 40), "red")
    exif = Image.Exif()
    exif[274] = 6  # 顺时针 90 度
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", exif=exif.tobytes())

    surface = decode(buffer.getvalue())

    assert (surface.width, surface.height) == (40, 80)


@pytest.mark.parametrize(
    "payload",
    [
        b"",
        b"not an image",
        _noisy_png()[:200],
        _image_bytes("TIFF"),
    ],
    ids=["empty", "text", "truncated", "unsupported-format"],
)
def test_decode_rejects_invalid_input(payload: bytes) -> None:
    with pytest.raises(DecodeError):
        decode(payload)


def _png_with_zero_width() -> bytes:
    data = bytearray(_image_bytes("PNG", size=(8, 8)))
    # IHDR: 8 字节签名 + 4 字节长度 + "IHDR"，随后是宽度，CRC 覆盖类型与数据。
    data[16:20] = struct.pack(">I", 0)
    data[29:33] = struct.pack(">I", zlib.crc32(bytes(data[12:29])) & 0xFFFFFFFF)
    return bytes(data)


def test_decode_rejects_zero_width_png() -> None:
    with pytest.raises(DecodeError):
        decode(_png_with_zero_width())


def test_decode_scales_16_bit_grayscale() -> None:
    buffer = io.BytesIO()
    Image.new("I;16", (4, 4), 32768).save(buffer, format="PNG")

    surface = decode(buffer.getvalue())

    assert surface.image.mode == "RGB"
    red, green, blue = surface.image.getpixel((1, 1))
    assert abs(red - 128) <= 1 and red == green == blue


def test_unidentified_input_message_is_readable() -> None:
    with pytest.raises(DecodeError) as excinfo:
        decode(b"not an image")

    message = str(excinfo.value)
    assert "BytesIO" not in message
    assert "0x" not in message
