"""转换任务的配置模型与固定参数。"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from image_converter.core.exceptions import InvalidConfigurationError

MAX_BATCH_SIZE = 50

DEFAULT_JPEG_QUALITY = 92
# 非 JPEG 格式使用的固定质量（0.0~1.0）。
DEFAULT_QUALITY_SCALE = 0.92

GIF_FRAME_DELAY_MS = 200
GIF_PALETTE_QUALITY = 10
GIF_WORKERS = 2


class OutputFormat(Enum):
    """支持的目标格式。"""

    JPEG = "image/jpeg"
    PNG = "image/png"
    WEBP = "image/webp"
    BMP = "image/bmp"
    GIF = "image/gif"

    @property
    def mime_type(self) -> str:
        return self.value

    @property
    def pil_format(self) -> str:
        return self.name

    @property
    def extension(self) -> str:
        """规范扩展名，取 MIME 子类型（如 ``jpeg``）。"""

        return self.value.split("/", 1)[1]

    @property
    def supports_alpha(self) -> bool:
        return self in {OutputFormat.PNG, OutputFormat.WEBP}

    @classmethod
    def parse(cls, value: str) -> "OutputFormat":
        """从名称、扩展名或 MIME 类型解析格式，大小写不敏感。"""

        key = (value or "").strip().lower().lstrip(".")
        if key == "jpg":
            key = "jpeg"
        for member in cls:
            if key in {member.name.lower(), member.value, member.extension}:
                return member
        raise InvalidConfigurationError(f"不支持的目标格式: {value}")


INPUT_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".bmp", ".gif"}


def quality_scale_for(fmt: OutputFormat, quality: int) -> float:
    """将 0~100 的质量线性映射到 0.0~1.0；只对 JPEG 生效，其余格式使用固定默认值。"""

    if fmt is OutputFormat.JPEG:
        return max(0, min(quality, 100)) / 100
    return DEFAULT_QUALITY_SCALE


@dataclass(frozen=True, slots=True)
class ConversionRequest:
    """单次运行内所有任务共享的转换参数。"""

    target_format: OutputFormat
    quality: int = DEFAULT_JPEG_QUALITY

    def __post_init__(self) -> None:
        if not isinstance(self.target_format, OutputFormat):
            raise InvalidConfigurationError(f"未知的目标格式: {self.target_format!r}")
        if not 0 <= self.quality <= 100:
            raise InvalidConfigurationError(f"quality 必须位于 0~100 之间: {self.quality}")

    @property
    def quality_scale(self) -> float:
        return quality_scale_for(self.target_format, self.quality)


@dataclass(slots=True)
class OutputConfig:
    """输出目录与冲突策略配置。"""

    output_dir: Path
    conflict_strategy: str = "rename"  # overwrite | skip | rename
    write_bundle: bool = True
    write_report: bool = True
    report_filename: str = "report.csv"
