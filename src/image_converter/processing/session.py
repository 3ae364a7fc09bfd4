"""转换会话：持有当前批次的文件、产物与进度，对外提供添加、转换、清空和打包操作。"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from image_converter.core.artifact_store import ArtifactStore
from image_converter.core.bundler import Bundle, Bundler
from image_converter.core.config import ConversionRequest
from image_converter.core.exceptions import BundleError, InvalidConfigurationError
from image_converter.core.ingestion import Admission, IngestionGate
from image_converter.core.models import Artifact, BatchResult, SourceFile
from image_converter.core.progress import BatchProgress
from image_converter.processing.pipeline import BatchRunner, ProgressCallback, build_jobs

LOGGER = logging.getLogger(__name__)

EMPTY_BATCH_MESSAGE = "Please select one or more files first."


class ConversionSession:
    """单个客户端会话内的批次状态。

    界面层只调用这里的方法并观察 ``progress`` / ``error``，
    句柄的释放点全部显式发生在新一轮转换、清空与 ``close`` 中。
    """

    def __init__(
        self,
        gate: Optional[IngestionGate] = None,
        store: Optional[ArtifactStore] = None,
        bundler: Optional[Bundler] = None,
        observers: Optional[Iterable[ProgressCallback]] = None,
    ) -> None:
        self.gate = gate or IngestionGate()
        self.store = store or ArtifactStore()
        self.bundler = bundler or Bundler()
        self.runner = BatchRunner(self.store, observers)
        self._files: list[SourceFile] = []
        self.result: Optional[BatchResult] = None
        self.error: Optional[str] = None

    @property
    def files(self) -> tuple[SourceFile, ...]:
        return tuple(self._files)

    @property
    def artifacts(self) -> list[Artifact]:
        return list(self.result.artifacts) if self.result else []

    @property
    def progress(self) -> BatchProgress:
        return self.runner.progress

    @property
    def converting(self) -> bool:
        return self.runner.running

    def add_files(self, candidates: Sequence[SourceFile]) -> Admission:
        """按剩余容量接收文件；新增文件会使上一轮的下载结果失效。"""

        if self.runner.running:
            raise InvalidConfigurationError("转换进行中，无法添加文件")
        self.error = None
        admission = self.gate.admit(candidates, already_held=len(self._files))
        if admission.overflow is not None:
            self.error = str(admission.overflow)

        if admission.accepted:
            self._files.extend(admission.accepted)
            self._discard_results()
        return admission

    async def convert(self, request: ConversionRequest) -> BatchResult:
        if not self._files:
            self.error = EMPTY_BATCH_MESSAGE
            raise InvalidConfigurationError(EMPTY_BATCH_MESSAGE)
        if self.runner.running:
            raise InvalidConfigurationError("已有转换正在进行")

        self.error = None
        self._discard_results()
        jobs = build_jobs(self._files, request)
        result = await self.runner.run(jobs)

        self.result = result
        self.error = result.summary
        for failure in result.failures:
            LOGGER.error("%s", failure.message)
        return result

    async def bundle(self) -> Bundle:
        """打包上一轮的全部成功产物。失败只影响本次打包。"""

        self.error = None
        try:
            return await self.bundler.bundle(self.artifacts)
        except BundleError as exc:
            self.error = f"Failed to prepare files for zipping: {exc}"
            LOGGER.error("%s", self.error)
            raise

    def clear(self) -> None:
        """释放全部句柄并清空文件、结果、进度与错误信息。"""

        if self.runner.running:
            raise InvalidConfigurationError("转换进行中，无法清空")
        self._discard_results()
        self._files.clear()
        self.runner.reset()
        self.error = None

    def close(self) -> None:
        self._discard_results()
        self._files.clear()

    def __enter__(self) -> "ConversionSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _discard_results(self) -> None:
        released = self.store.release_all()
        if released:
            LOGGER.debug("释放 %d 个产物句柄", released)
        self.result = None
