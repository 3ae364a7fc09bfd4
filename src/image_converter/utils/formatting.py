"""文件名与大小的格式化工具。"""

from __future__ import annotations

from itertools import count
from pathlib import PurePath
from typing import MutableSet

from image_converter.core.config import OutputFormat

SIZE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")
OUTPUT_PREFIX = "converted-"


def format_bytes(size: int, decimals: int = 2) -> str:
    """将字节数格式化为 1024 进制的可读字符串，去掉多余的尾随零。"""

    if size < 0:
        raise ValueError(f"size 不能为负数: {size}")
    if size == 0:
        return "0 Bytes"

    digits = max(decimals, 0)
    index = 0
    while index < len(SIZE_UNITS) - 1 and size >= 1024 ** (index + 1):
        index += 1

    text = f"{size / 1024 ** index:.{digits}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text} {SIZE_UNITS[index]}"


def derive_output_name(source_name: str, fmt: OutputFormat) -> str:
    """保留源文件名主干，替换为目标格式的扩展名。"""

    stem = PurePath(source_name).stem or source_name
    return f"{OUTPUT_PREFIX}{stem}.{fmt.extension}"


def reserve_unique_name(name: str, reserved: MutableSet[str]) -> str:
    """在已占用集合中为名称追加 _1、_2 后缀直到唯一，并登记到集合中。"""

    candidate = name
    if candidate in reserved:
        path = PurePath(name)
        for idx in count(1):
            candidate = f"{path.stem}_{idx}{path.suffix}"
            if candidate not in reserved:
                break
    reserved.add(candidate)
    return candidate
