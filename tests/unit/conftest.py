#!/usr/bin/env python3
"""
pytest 配置文件

提供共享的 fixtures 和配置
"""
import sys
import random
import pytest
from pathlib import Path

# 添加项目路径
sys.path.insert(0, str(Path(__file__).parent.parent.parent))


@pytest.fixture(autouse=True)
def reset_config():
    """每个测试前重置配置"""
    import colorteller.config as config_module
    config_module._config = None
    yield
    config_module._config = None


@pytest.fixture(autouse=True)
def reset_picker():
    """每个测试前重置全局选色器"""
    import colorteller.palette as palette_module
    palette_module._picker = None
    yield
    palette_module._picker = None


class FixedRandom(random.Random):
    """按顺序返回预设值的随机源"""

    def __init__(self, values):
        super().__init__(0)
        self.values = list(values)
        self.calls = []

    def randrange(self, *args, **kwargs):
        self.calls.append(args)
        return self.values.pop(0)


@pytest.fixture
def fixed_random():
    return FixedRandom


@pytest.fixture
def sleeps():
    """记录 sleep 调用而不真正等待"""
    calls = []
    return calls


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds):
        sleeps.append(seconds)
    return _sleep
