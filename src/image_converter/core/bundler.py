"""将成功的产物打包为单个 ZIP。"""

from __future__ import annotations

import asyncio
import io
import logging
import time
from dataclasses import dataclass, field
from typing import Optional, Sequence
from zipfile import ZIP_DEFLATED, ZipFile

from image_converter.core.exceptions import BundleError, ImageConverterError
from image_converter.core.models import Artifact
from image_converter.utils.formatting import reserve_unique_name

LOGGER = logging.getLogger(__name__)

BUNDLE_PREFIX = "converted_images_"


@dataclass(frozen=True, slots=True)
class Bundle:
    filename: str
    data: bytes = field(repr=False)
    entries: tuple[str, ...] = ()

    @property
    def size_bytes(self) -> int:
        return len(self.data)


def bundle_filename(timestamp_ms: Optional[int] = None) -> str:
    """以毫秒级 Unix 时间戳命名，避免重复下载时重名。"""

    if timestamp_ms is None:
        timestamp_ms = time.time_ns() // 1_000_000
    return f"{BUNDLE_PREFIX}{timestamp_ms}.zip"


class Bundler:
    """先重新读取全部产物，再统一写入归档；任一产物读取失败则整体失败。"""

    async def bundle(self, artifacts: Sequence[Artifact]) -> Bundle:
        if not artifacts:
            raise BundleError("没有可打包的产物")

        payload: list[tuple[str, bytes]] = []
        reserved: set[str] = set()
        for artifact in artifacts:
            try:
                data = artifact.read()
            except ImageConverterError as exc:
                raise BundleError(f"Failed to fetch {artifact.derived_name}: {exc}") from exc
            payload.append((reserve_unique_name(artifact.derived_name, reserved), data))

        entries = tuple(name for name, _ in payload)

        try:
            data = await asyncio.to_thread(_write_archive, payload)
        except OSError as exc:
            raise BundleError(f"Failed to generate ZIP file: {exc}") from exc
        finally:
            payload.clear()

        bundle = Bundle(
            filename=bundle_filename(),
            data=data,
            entries=entries,
        )
        LOGGER.info("打包完成 %s：%d 个文件，%d bytes", bundle.filename, len(bundle.entries), len(data))
        return bundle


def _write_archive(payload: Sequence[tuple[str, bytes]]) -> bytes:
    buffer = io.BytesIO()
    with ZipFile(buffer, "w", compression=ZIP_DEFLATED) as archive:
        for name, data in payload:
            archive.writestr(name, data)
    return buffer.getvalue()
