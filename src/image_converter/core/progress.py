"""进度更新的数据模型。"""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class BatchProgress:
    """批处理过程中的进度信息，每个任务结束后发布一次。"""

    completed: int
    total: int

    @property
    def fraction(self) -> float:
        if self.total <= 0:
            return 0.0
        return self.completed / self.total

    @property
    def percent(self) -> int:
        # 四舍五入取半进位。
        return math.floor(self.fraction * 100 + 0.5)

    @property
    def label(self) -> str:
        return f"Converting ({self.percent}%)"

    @property
    def finished(self) -> bool:
        return self.total > 0 and self.completed >= self.total
