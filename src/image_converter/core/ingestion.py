"""批次接收：数量上限与输入类型筛选。"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Optional, Sequence

from image_converter.core.config import INPUT_EXTENSIONS, MAX_BATCH_SIZE
from image_converter.core.exceptions import IngestionOverflow
from image_converter.core.models import SourceFile

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class Admission:
    """一次接收调用的结果。被拒绝的文件只以数量形式报告。"""

    accepted: list[SourceFile] = field(default_factory=list)
    rejected_count: int = 0
    unsupported_count: int = 0
    overflow: Optional[IngestionOverflow] = None


def is_supported_input(name: str) -> bool:
    return PurePath(name).suffix.lower() in INPUT_EXTENSIONS


class IngestionGate:
    """限制整个批次的文件数量。"""

    def __init__(self, max_batch_size: int = MAX_BATCH_SIZE) -> None:
        self.max_batch_size = max_batch_size

    def admit(self, candidates: Sequence[SourceFile], already_held: int = 0) -> Admission:
        supported = [candidate for candidate in candidates if is_supported_input(candidate.name)]
        unsupported = len(candidates) - len(supported)
        if unsupported:
            LOGGER.info("忽略 %d 个不支持的文件", unsupported)

        capacity = max(self.max_batch_size - already_held, 0)
        accepted = list(supported[:capacity])
        rejected = len(supported) - len(accepted)

        overflow = None
        if rejected:
            overflow = IngestionOverflow(self.max_batch_size, len(accepted), rejected)
            LOGGER.warning("%s", overflow)

        return Admission(
            accepted=accepted,
            rejected_count=rejected,
            unsupported_count=unsupported,
            overflow=overflow,
        )
