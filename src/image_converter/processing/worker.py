"""单个转换任务的执行单元。"""

from __future__ import annotations

import logging
from typing import MutableSet, Optional

from image_converter.core.artifact_store import ArtifactStore
from image_converter.core.exceptions import ImageConverterError
from image_converter.core.models import Artifact, ConversionJob
from image_converter.processing.decoder import PixelSurface, decode
from image_converter.processing.encoder import encode
from image_converter.utils.formatting import derive_output_name, reserve_unique_name

LOGGER = logging.getLogger(__name__)


async def run_job(
    job: ConversionJob,
    store: ArtifactStore,
    reserved_names: Optional[MutableSet[str]] = None,
) -> ConversionJob:
    """解码 -> 编码 -> 登记产物。任何失败都记录到 job 上，不向外抛出。"""

    job.mark_running()
    name = job.source.name
    fmt = job.request.target_format
    surface: Optional[PixelSurface] = None

    try:
        surface = decode(job.source.data)
        data = await encode(surface, fmt, job.request.quality)
    except ImageConverterError as exc:
        _record_failure(job, exc)
        return job
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("转换 %s 时出现意外错误", name)
        _record_failure(job, exc)
        return job
    finally:
        if surface is not None:
            surface.close()

    derived_name = derive_output_name(name, fmt)
    if reserved_names is not None:
        derived_name = reserve_unique_name(derived_name, reserved_names)

    handle = store.register(derived_name, data)
    job.succeed(
        Artifact(
            derived_name=derived_name,
            size_bytes=len(data),
            handle=handle,
            source_name=name,
            format=fmt,
        )
    )
    LOGGER.info("完成 %s -> %s (%d bytes)", name, derived_name, len(data))
    return job


def _record_failure(job: ConversionJob, exc: Exception) -> None:
    message = f"Failed {job.source.name}: {exc}"
    LOGGER.warning("%s", message)
    job.fail(message, type(exc).__name__)
