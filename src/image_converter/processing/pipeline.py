"""批处理流水线：按提交顺序逐个执行转换任务并汇总进度。"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional, Sequence

from image_converter.core.artifact_store import ArtifactStore
from image_converter.core.config import ConversionRequest
from image_converter.core.exceptions import InvalidConfigurationError
from image_converter.core.models import BatchResult, ConversionJob, JobFailure, JobStatus, SourceFile
from image_converter.core.progress import BatchProgress
from image_converter.processing.worker import run_job

LOGGER = logging.getLogger(__name__)


ProgressCallback = Callable[[BatchProgress], None]


def build_jobs(sources: Iterable[SourceFile], request: ConversionRequest) -> list[ConversionJob]:
    """为每个源文件创建一个待执行的任务，所有任务共享同一个请求。"""

    return [ConversionJob(source=source, request=request) for source in sources]


class BatchRunner:
    """串行执行任务队列。

    每个任务结束（成功或失败）后完成数加一，并在开始下一个任务之前
    把进度发布给所有观察者。单个任务失败不会中断整个批次。
    """

    def __init__(self, store: ArtifactStore, observers: Optional[Iterable[ProgressCallback]] = None) -> None:
        self.store = store
        self._observers: list[ProgressCallback] = list(observers or [])
        self._jobs: list[ConversionJob] = []
        self._progress = BatchProgress(completed=0, total=0)
        self._running = False

    @property
    def jobs(self) -> tuple[ConversionJob, ...]:
        return tuple(self._jobs)

    @property
    def progress(self) -> BatchProgress:
        return self._progress

    @property
    def running(self) -> bool:
        return self._running

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """注册进度观察者，返回取消注册的函数。"""

        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def reset(self) -> None:
        if self._running:
            raise InvalidConfigurationError("转换进行中，无法重置")
        self._jobs = []
        self._progress = BatchProgress(completed=0, total=0)

    async def run(self, jobs: Sequence[ConversionJob]) -> BatchResult:
        if self._running:
            raise InvalidConfigurationError("已有转换正在进行")

        self._running = True
        self._jobs = list(jobs)
        total = len(self._jobs)
        self._progress = BatchProgress(completed=0, total=total)
        reserved_names: set[str] = set()
        result = BatchResult(jobs=list(self._jobs))
        LOGGER.info("开始转换 %d 个文件", total)

        try:
            for completed, job in enumerate(self._jobs, start=1):
                await run_job(job, self.store, reserved_names)
                _record_outcome(job, result)
                self._progress = BatchProgress(completed=completed, total=total)
                self._publish(self._progress)
        finally:
            self._running = False

        LOGGER.info("转换结束：成功 %d 个，失败 %d 个", len(result.artifacts), len(result.failures))
        return result

    def _publish(self, progress: BatchProgress) -> None:
        for callback in list(self._observers):
            try:
                callback(progress)
            except Exception:  # noqa: BLE001
                LOGGER.exception("进度回调执行异常")


def _record_outcome(job: ConversionJob, result: BatchResult) -> None:
    if job.status is JobStatus.SUCCEEDED and job.artifact is not None:
        result.artifacts.append(job.artifact)
    else:
        result.failures.append(JobFailure(name=job.source.name, message=job.error or "unknown error"))
