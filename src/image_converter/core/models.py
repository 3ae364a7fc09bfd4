"""核心数据模型定义。"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional

from image_converter.core.config import ConversionRequest, OutputFormat

if TYPE_CHECKING:
    from image_converter.core.artifact_store import ArtifactHandle


@dataclass(frozen=True, slots=True)
class SourceFile:
    """接收阶段得到的源文件，创建后不再修改。"""

    name: str
    data: bytes = field(repr=False)

    @property
    def size_bytes(self) -> int:
        return len(self.data)


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(slots=True)
class Artifact:
    """成功任务的编码产物。字节由 ArtifactStore 持有，通过句柄读取。"""

    derived_name: str
    size_bytes: int
    handle: "ArtifactHandle"
    source_name: str
    format: OutputFormat

    def read(self) -> bytes:
        """通过句柄重新读取字节；句柄释放后抛出 ArtifactReleasedError。"""

        return self.handle.read()


@dataclass(slots=True)
class ConversionJob:
    """一个源文件在一次运行中的转换单元。"""

    source: SourceFile
    request: ConversionRequest
    status: JobStatus = JobStatus.PENDING
    artifact: Optional[Artifact] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def settled(self) -> bool:
        return self.status in {JobStatus.SUCCEEDED, JobStatus.FAILED}

    def mark_running(self) -> None:
        self.status = JobStatus.RUNNING
        self.artifact = None
        self.error = None
        self.error_type = None

    def succeed(self, artifact: Artifact) -> None:
        self.status = JobStatus.SUCCEEDED
        self.artifact = artifact
        self.error = None
        self.error_type = None

    def fail(self, message: str, error_type: str) -> None:
        self.status = JobStatus.FAILED
        self.artifact = None
        self.error = message
        self.error_type = error_type


@dataclass(frozen=True, slots=True)
class JobFailure:
    name: str
    message: str


@dataclass(slots=True)
class BatchResult:
    """一次运行的产出。"""

    artifacts: list[Artifact] = field(default_factory=list)
    failures: list[JobFailure] = field(default_factory=list)
    jobs: list[ConversionJob] = field(default_factory=list)

    @property
    def summary(self) -> Optional[str]:
        """存在失败时返回面向用户的汇总信息。"""

        if not self.failures:
            return None
        return f"Completed with {len(self.failures)} error(s)"
