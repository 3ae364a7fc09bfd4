"""源文件解码：字节 -> 像素面。"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from image_converter.core.exceptions import DecodeError

LOGGER = logging.getLogger(__name__)

DECODABLE_FORMATS = ("JPEG", "PNG", "WEBP", "BMP", "GIF")


@dataclass(slots=True)
class PixelSurface:
    """解码后的像素面，模式为 RGB 或 RGBA。"""

    width: int
    height: int
    image: Image.Image

    @property
    def has_alpha(self) -> bool:
        return self.image.mode == "RGBA"

    def close(self) -> None:
        self.image.close()


def decode(data: bytes) -> PixelSurface:
    """解码图片字节并执行 EXIF 旋转与模式归一化。

    动图只取第一帧。宽或高为 0 的结果一律视为解码失败。
    返回值持有新的 Image 对象，调用者负责关闭。
    """

    if not data:
        raise DecodeError("文件为空")

    try:
        with Image.open(io.BytesIO(data), formats=DECODABLE_FORMATS) as img:
            _ensure_dimensions(img.size)
            img.load()

            # EXIF Orientation 校正
            img = ImageOps.exif_transpose(img)
            img = _normalize_mode(img)
            surface_image = img.copy()
    except DecodeError:
        raise
    except UnidentifiedImageError as exc:
        LOGGER.debug("无法识别图像数据: %s", exc)
        raise DecodeError("无法识别的图像格式") from exc
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        LOGGER.debug("无法解码图像数据: %s", exc)
        raise DecodeError(f"无法解码图像: {exc}") from exc

    width, height = surface_image.size
    _ensure_dimensions((width, height))
    return PixelSurface(width=width, height=height, image=surface_image)


def _ensure_dimensions(size: tuple[int, int]) -> None:
    width, height = size
    if width <= 0 or height <= 0:
        raise DecodeError(f"图像尺寸无效: {width}x{height}")


def _normalize_mode(img: Image.Image) -> Image.Image:
    """统一到 RGB，存在透明信息时保留为 RGBA。"""

    if img.mode in {"RGB", "RGBA"}:
        return img

    if img.mode in {"LA", "PA"} or (img.mode in {"P", "L"} and "transparency" in img.info):
        return img.convert("RGBA")

    if img.mode == "CMYK":
        return img.convert("RGB")

    if img.mode == "I" or img.mode.startswith("I;16"):
        return _high_bit_depth_to_rgb(img)

    # 其他模式直接转换
    return img.convert("RGB")


def _high_bit_depth_to_rgb(img: Image.Image) -> Image.Image:
    """16 位灰度按比例缩放到 8 位，避免直接转换时高于 255 的值被截断。"""

    values = np.asarray(img.convert("I"), dtype=np.int64)
    scaled = np.clip(values >> 8, 0, 255).astype(np.uint8)
    return Image.fromarray(scaled).convert("RGB")
