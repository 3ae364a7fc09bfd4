"""文件扫描：从磁盘路径收集候选源文件。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, Sequence

from image_converter.core.config import INPUT_EXTENSIONS
from image_converter.core.models import SourceFile

LOGGER = logging.getLogger(__name__)


def _iter_candidate_files(path: Path, recursive: bool) -> Iterator[Path]:
    """遍历路径下的文件。显式给出的文件原样返回，目录只返回支持的图片扩展名。"""

    if path.is_file():
        yield path
        return

    if not path.is_dir():
        LOGGER.warning("路径不存在: %s", path)
        return

    iterator = path.rglob("*") if recursive else path.glob("*")
    candidates = [
        candidate
        for candidate in iterator
        if candidate.is_file() and candidate.suffix.lower() in INPUT_EXTENSIONS
    ]
    candidates.sort(key=lambda x: str(x).lower())
    yield from candidates


def collect_source_files(paths: Sequence[Path], recursive: bool = True) -> list[SourceFile]:
    """按给定顺序读取候选文件，重复路径只保留一次。"""

    collected: list[SourceFile] = []
    seen_paths: set[Path] = set()

    for root in paths:
        for candidate in _iter_candidate_files(root.resolve(), recursive):
            if candidate in seen_paths:
                continue
            seen_paths.add(candidate)

            try:
                data = candidate.read_bytes()
            except OSError as exc:
                LOGGER.warning("无法读取文件 %s: %s", candidate, exc)
                continue

            collected.append(SourceFile(name=candidate.name, data=data))

    return collected
