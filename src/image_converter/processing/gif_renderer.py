"""GIF 渲染器：调色板量化在独立的工作线程池中完成。"""

from __future__ import annotations

import io
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

import numpy as np
from PIL import Image

from image_converter.core.config import GIF_FRAME_DELAY_MS, GIF_PALETTE_QUALITY, GIF_WORKERS
from image_converter.core.exceptions import EncodeError

LOGGER = logging.getLogger(__name__)

MAX_COLORS = 256


@dataclass(slots=True)
class GifFrame:
    image: Image.Image
    delay_ms: int = GIF_FRAME_DELAY_MS


class GifRenderer:
    """逐帧量化并组装 GIF。

    ``quality`` 是构建调色板时的像素采样间隔，数值越小越精确、越慢。
    ``render`` 立即返回 Future，所有帧完成并组装后才会得到结果。
    """

    def __init__(self, workers: int = GIF_WORKERS, quality: int = GIF_PALETTE_QUALITY) -> None:
        if workers < 1:
            raise ValueError("workers 必须 >= 1")
        if quality < 1:
            raise ValueError("quality 必须 >= 1")
        self.workers = workers
        self.quality = quality
        self._frames: list[GifFrame] = []
        self._executor: Optional[ThreadPoolExecutor] = None

    def add_frame(self, image: Image.Image, delay_ms: int = GIF_FRAME_DELAY_MS) -> None:
        self._frames.append(GifFrame(image=image.convert("RGB"), delay_ms=delay_ms))

    def render(self) -> "Future[bytes]":
        if not self._frames:
            raise EncodeError("GIF rendering error: no frames")
        if self._executor is not None:
            raise EncodeError("GIF rendering error: render already started")

        frames = list(self._frames)
        finished: "Future[bytes]" = Future()
        finished.set_running_or_notify_cancel()
        quantized: list[Optional[Image.Image]] = [None] * len(frames)
        pending = len(frames)
        lock = threading.Lock()

        self._executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="gif-render")
        LOGGER.debug("开始渲染 GIF：%d 帧，%d 个工作线程", len(frames), self.workers)

        def on_frame_done(index: int, future: "Future[Image.Image]") -> None:
            nonlocal pending
            with lock:
                if finished.done():
                    return
                exc = future.exception()
                if exc is not None:
                    finished.set_exception(exc)
                    self._shutdown()
                    return
                quantized[index] = future.result()
                pending -= 1
                if pending:
                    return

            try:
                finished.set_result(self._assemble(frames, quantized))
            except Exception as exc:  # noqa: BLE001
                finished.set_exception(exc)
            finally:
                self._shutdown()

        for index, frame in enumerate(frames):
            try:
                future = self._executor.submit(self._quantize, frame.image)
            except RuntimeError as exc:
                # 前面的帧已失败，执行器已关闭。
                with lock:
                    if not finished.done():
                        finished.set_exception(exc)
                break
            future.add_done_callback(lambda fut, idx=index: on_frame_done(idx, fut))

        return finished

    def close(self) -> None:
        self._shutdown()
        self._frames.clear()

    def __enter__(self) -> "GifRenderer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _quantize(self, image: Image.Image) -> Image.Image:
        """按采样间隔抽取像素构建调色板，再映射整帧。"""

        pixels = np.asarray(image, dtype=np.uint8).reshape(-1, 3)
        sample = np.ascontiguousarray(pixels[:: self.quality]).reshape(1, -1, 3)
        palette_source = Image.fromarray(sample)
        palette = palette_source.quantize(colors=MAX_COLORS, method=Image.Quantize.MEDIANCUT)
        return image.quantize(palette=palette, dither=Image.Dither.FLOYDSTEINBERG)

    @staticmethod
    def _assemble(frames: list[GifFrame], quantized: list[Optional[Image.Image]]) -> bytes:
        images = [img for img in quantized if img is not None]
        if len(images) != len(frames):
            raise EncodeError("GIF rendering error: missing frames")

        delays = [frame.delay_ms for frame in frames]
        duration: int | list[int] = delays[0] if len(set(delays)) == 1 else delays

        buffer = io.BytesIO()
        first, *rest = images
        first.save(
            buffer,
            format="GIF",
            save_all=True,
            append_images=rest,
            duration=duration,
            loop=0,
        )
        return buffer.getvalue()

    def _shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)
