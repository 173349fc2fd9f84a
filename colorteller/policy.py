"""
请求策略模块 - 决定返回的颜色、是否注入延迟、是否返回 500

优先级：
1. 环境变量强制覆盖 (COLOR / LATENCY / ERROR_RATE) 无条件生效
2. 请求体里按颜色配置的概率参数
3. 默认不延迟、成功
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .config import EnvOverrides
from .palette import ColorPicker

logger = logging.getLogger(__name__)

# 部分客户端把空数组当作字符串发送
EMPTY_SENTINEL = b'"[]"'


class RequestBodyError(ValueError):
    """请求体无法解析"""


class ColorParameters(BaseModel):
    """单个颜色的延迟 / 失败参数"""
    model_config = ConfigDict(populate_by_name=True, strict=True, extra="ignore")

    # null 等同于空字符串
    color: Optional[str] = ""
    # None 表示不生效，与 0 不同
    delay_percent: Optional[int] = Field(default=None, alias="delayPercent", ge=0, le=100)
    # 负数不延迟
    delay_length: Optional[int] = Field(default=0, alias="delayLength")
    return500: Optional[int] = Field(default=None, ge=0, le=100)


_body_adapter = TypeAdapter(Optional[List[ColorParameters]])


def parse_color_parameters(body: bytes) -> List[ColorParameters]:
    """解析请求体，空 body 与 "[]" 视为没有参数，其余一律按 JSON 解析"""
    if not body or body == EMPTY_SENTINEL:
        return []
    try:
        return _body_adapter.validate_json(body) or []
    except ValidationError as e:
        raise RequestBodyError(str(e)) from e


def find_active_parameters(params: List[ColorParameters], color: str) -> Optional[ColorParameters]:
    """
    取最后一个匹配颜色的参数

    同一颜色出现多次时后者覆盖前者
    """
    active = None
    for cp in params:
        if (cp.color or "") == color:
            active = cp
    return active


@dataclass
class ColorDecision:
    color: str
    success: bool
    delay_seconds: int = 0


@dataclass
class DelayPlan:
    """已确定颜色和延迟、尚未判定成败的请求"""
    color: str
    active: Optional[ColorParameters]
    delay_seconds: Optional[int]


class RequestPolicy:
    """
    请求策略评估器

    overrides 在启动时快照，评估过程只读；延迟在事件循环上 await，
    不占用线程池，sleep 可注入以便测试
    """

    def __init__(self, overrides: EnvOverrides, picker: ColorPicker,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.overrides = overrides
        self.picker = picker
        self.sleep = sleep

    async def decide(self, body: bytes) -> ColorDecision:
        """
        评估单个请求

        Raises:
            RequestBodyError: 请求体格式错误
            OverrideError: LATENCY / ERROR_RATE 不是整数
        """
        plan = self.plan(body)
        if plan.delay_seconds is not None:
            logger.info(f"Delaying {plan.color} {plan.delay_seconds}s")
            await self.sleep(plan.delay_seconds)

        # 延迟结束后再独立判定成败
        return self.settle(plan)

    def plan(self, body: bytes) -> DelayPlan:
        """解析请求体，确定颜色和延迟"""
        params = parse_color_parameters(body)

        color = self.overrides.color or self.picker.pick()
        active = find_active_parameters(params, color)
        return DelayPlan(color=color, active=active, delay_seconds=self._decide_delay(active))

    def settle(self, plan: DelayPlan) -> ColorDecision:
        """判定成败"""
        success = self._decide_success(plan.active)
        return ColorDecision(color=plan.color, success=success, delay_seconds=plan.delay_seconds or 0)

    def _decide_delay(self, active: Optional[ColorParameters]) -> Optional[int]:
        forced = self.overrides.forced_latency()
        if forced is not None:
            return max(forced, 0)

        if active is None or not active.delay_percent:
            return None
        if active.delay_percent >= self.picker.percent():
            return max(active.delay_length or 0, 0)
        return None

    def _decide_success(self, active: Optional[ColorParameters]) -> bool:
        rate = self.overrides.forced_error_rate()
        if rate is not None:
            return self.picker.percent() >= rate

        if active is None or not active.return500:
            return True
        # 抽到的值 <= return500 时失败
        return active.return500 < self.picker.percent()
