"""输出写入与冲突处理模块。"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from itertools import count
from pathlib import Path
from typing import Optional, Set

from image_converter.core.config import OutputConfig
from image_converter.core.exceptions import ArtifactWriteError, InvalidConfigurationError

LOGGER = logging.getLogger(__name__)

CONFLICT_STRATEGIES = ("overwrite", "skip", "rename")


@dataclass(slots=True)
class DestinationDecision:
    """封装输出文件决策。"""

    destination: Optional[Path]
    action: str
    note: Optional[str] = None


class OutputManager:
    """负责处理输出目录、冲突策略与字节写入。"""

    def __init__(self, config: OutputConfig) -> None:
        if config.conflict_strategy not in CONFLICT_STRATEGIES:
            raise InvalidConfigurationError(f"未知的冲突策略: {config.conflict_strategy}")
        self.config = config
        self.output_dir = config.output_dir.resolve()
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self._reserved_paths: Set[Path] = set()

    def decide_destination(self, name: str) -> DestinationDecision:
        """根据冲突策略确定输出路径。本次已写入的路径同样视为已存在。"""

        destination = self.output_dir / Path(name).name

        if not self._is_taken(destination):
            return DestinationDecision(destination=destination, action="write")

        strategy = self.config.conflict_strategy
        existing_msg = f"目标已存在: {destination.name}"

        if strategy == "overwrite":
            return DestinationDecision(destination=destination, action="overwrite", note=existing_msg)
        if strategy == "skip":
            return DestinationDecision(destination=destination, action="skip", note=existing_msg)

        new_destination = self._generate_renamed_path(destination)
        return DestinationDecision(
            destination=new_destination,
            action="rename",
            note=f"{existing_msg} -> 重命名为 {new_destination.name}",
        )

    def write(self, name: str, data: bytes) -> DestinationDecision:
        """按冲突策略写入字节，返回实际采用的决策。"""

        decision = self.decide_destination(name)
        if decision.action == "skip" or decision.destination is None:
            LOGGER.info("跳过输出（已存在）：%s", decision.destination)
            return decision

        try:
            decision.destination.write_bytes(data)
        except OSError as exc:
            raise ArtifactWriteError(f"写入文件失败: {decision.destination}") from exc

        self._reserved_paths.add(decision.destination)
        LOGGER.debug("写入 %s (%d bytes)", decision.destination, len(data))
        return decision

    def _is_taken(self, destination: Path) -> bool:
        return destination in self._reserved_paths or destination.exists()

    def _generate_renamed_path(self, destination: Path) -> Path:
        """在 rename 策略下生成新的文件名。"""

        stem = destination.stem
        suffix = destination.suffix

        for idx in count(1):
            candidate = destination.with_name(f"{stem}_{idx}{suffix}")
            if not self._is_taken(candidate):
                return candidate

        # 理论上不会执行到此处
        return destination
