"""
颜色选择模块
"""
import time
import random
from typing import Sequence

COLORS = (
    "red",
    "orange",
    "yellow",
    "green",
    "blue",
    "purple",
)


class ColorPicker:
    """从固定调色板中均匀随机选色，同时持有进程级随机源"""

    def __init__(self, colors: Sequence[str] = COLORS, rng: random.Random = None):
        if not colors:
            raise ValueError("调色板不能为空")
        self.colors = tuple(colors)
        self.rng = rng or random.Random(time.time_ns())

    def pick(self) -> str:
        return self.colors[self.rng.randrange(len(self.colors))]

    def percent(self) -> int:
        """[0, 100) 内的均匀随机整数"""
        return self.rng.randrange(100)


_picker: ColorPicker = None


def get_picker() -> ColorPicker:
    """获取全局选色器，首次调用时用当前时间播种"""
    global _picker
    if _picker is None:
        _picker = ColorPicker()
    return _picker
