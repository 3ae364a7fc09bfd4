"""像素面编码：普通栅格格式与 GIF 两条路径共用一个异步入口。"""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Any

from PIL import Image

from image_converter.core.config import (
    DEFAULT_JPEG_QUALITY,
    GIF_FRAME_DELAY_MS,
    GIF_PALETTE_QUALITY,
    GIF_WORKERS,
    OutputFormat,
    quality_scale_for,
)
from image_converter.core.exceptions import EncodeError
from image_converter.processing.decoder import PixelSurface
from image_converter.processing.gif_renderer import GifRenderer

LOGGER = logging.getLogger(__name__)

FLATTEN_BACKGROUND = (255, 255, 255)


async def encode(surface: PixelSurface, fmt: OutputFormat, quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    """将像素面编码为目标格式字节。

    ``quality`` 取值 0~100，只对 JPEG 生效。GIF 走独立的渲染器路径，
    帧延时与调色板质量固定，完成前没有进度信号。
    """

    quality_scale = quality_scale_for(fmt, quality)
    image = _prepare_image(surface.image, fmt)
    if fmt is OutputFormat.GIF:
        data = await _encode_gif(image)
    else:
        data = await asyncio.to_thread(_encode_raster, image, fmt, quality_scale)

    if not data:
        raise EncodeError(f"Conversion failed: no output for {fmt.name}")
    LOGGER.debug("编码完成 %s: %d bytes", fmt.name, len(data))
    return data


def _encode_raster(image: Image.Image, fmt: OutputFormat, quality_scale: float) -> bytes:
    save_params: dict[str, Any] = {}
    if fmt in {OutputFormat.JPEG, OutputFormat.WEBP}:
        save_params["quality"] = _to_pil_quality(quality_scale)
    if fmt is OutputFormat.PNG:
        save_params["optimize"] = True

    buffer = io.BytesIO()
    try:
        image.save(buffer, format=fmt.pil_format, **save_params)
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeError(f"Conversion failed: {exc}") from exc
    return buffer.getvalue()


async def _encode_gif(image: Image.Image) -> bytes:
    renderer = GifRenderer(workers=GIF_WORKERS, quality=GIF_PALETTE_QUALITY)
    try:
        renderer.add_frame(image, delay_ms=GIF_FRAME_DELAY_MS)
        return await asyncio.wrap_future(renderer.render())
    except EncodeError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise EncodeError(f"GIF rendering error: {exc}") from exc
    finally:
        renderer.close()


def _prepare_image(image: Image.Image, fmt: OutputFormat) -> Image.Image:
    """不支持透明通道的格式先合成到白色背景。"""

    if image.mode == "RGBA" and not fmt.supports_alpha:
        background = Image.new("RGB", image.size, FLATTEN_BACKGROUND)
        background.paste(image, mask=image.split()[-1])
        return background
    return image


def _to_pil_quality(quality_scale: float) -> int:
    scale = max(0.0, min(quality_scale, 1.0))
    return int(round(scale * 100))
