"""产物存储：持有编码结果并管理可撤销句柄的生命周期。"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional

from image_converter.core.exceptions import ArtifactReleasedError

LOGGER = logging.getLogger(__name__)

URL_PREFIX = "blob:image-converter/"


@dataclass(frozen=True, slots=True)
class ArtifactHandle:
    """指向存储中某个产物的可撤销引用。"""

    url: str
    name: str
    store: "ArtifactStore" = field(repr=False, compare=False)

    @property
    def released(self) -> bool:
        return not self.store.is_live(self)

    def read(self) -> bytes:
        return self.store.fetch(self)


class ArtifactStore:
    """登记产物字节并发放句柄。

    ``release_all`` 必须在开始新一轮转换、清空批次以及进程退出时调用，
    每个句柄恰好释放一次。
    """

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    def __len__(self) -> int:
        return len(self._blobs)

    def __enter__(self) -> "ArtifactStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release_all()

    def register(self, name: str, data: bytes) -> ArtifactHandle:
        url = f"{URL_PREFIX}{uuid.uuid4().hex}"
        self._blobs[url] = bytes(data)
        LOGGER.debug("登记产物 %s -> %s (%d bytes)", name, url, len(data))
        return ArtifactHandle(url=url, name=name, store=self)

    def is_live(self, handle: ArtifactHandle) -> bool:
        return handle.store is self and handle.url in self._blobs

    def fetch(self, handle: ArtifactHandle) -> bytes:
        data: Optional[bytes] = self._blobs.get(handle.url) if handle.store is self else None
        if data is None:
            raise ArtifactReleasedError(f"句柄已失效: {handle.name} ({handle.url})")
        return data

    def release_all(self) -> int:
        """释放所有已发放的句柄，返回释放数量。"""

        released = len(self._blobs)
        for url in list(self._blobs):
            LOGGER.debug("释放产物句柄 %s", url)
            del self._blobs[url]
        return released
