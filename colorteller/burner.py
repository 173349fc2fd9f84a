"""
CPU 负载模块 - 启动 N 个忙循环 worker，直到 ShutdownToken 关闭
"""
import os
import signal
import logging
import multiprocessing
from typing import List

from .shutdown import ShutdownToken

logger = logging.getLogger(__name__)

ALL_CPUS = "all"


class BurnConfigError(ValueError):
    """cpu-burn 参数既不是数字也不是 all"""


def parse_burn_count(value: str) -> int:
    """解析 worker 数量，空字符串为 0，all 为 CPU 核数"""
    value = (value or "").strip()
    if value == "":
        return 0
    if value == ALL_CPUS:
        return os.cpu_count() or 1
    try:
        count = int(value)
    except ValueError:
        raise BurnConfigError(f"invalid cpu-burn value {value!r}: expected a number or 'all'")
    if count < 0:
        raise BurnConfigError(f"invalid cpu-burn value {value!r}: must not be negative")
    return count


def _noop():
    pass


def _burn(index: int, stop_event):
    # 终端 Ctrl-C 发给整个进程组，worker 只听 stop_event
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    logger.info(f"Burning CPU #{index}")
    # 每轮非阻塞检查一次
    while not stop_event.is_set():
        _noop()
    logger.info(f"Stopped CPU burn #{index}")


class CpuBurner:
    """CPU 负载 worker 池，每个 worker 是一个独立进程"""

    def __init__(self, token: ShutdownToken):
        self.token = token
        self.workers: List[multiprocessing.Process] = []

    def start(self, num_cpu_burn: str) -> int:
        """
        启动 worker

        Raises:
            BurnConfigError: 参数无法解析
        """
        if not num_cpu_burn:
            return 0
        count = parse_burn_count(num_cpu_burn)

        logger.info(f"Burning {count} CPUs")
        for i in range(count):
            worker = multiprocessing.Process(
                target=_burn,
                args=(i, self.token.event),
                name=f"CpuBurn-{i}",
                daemon=True,
            )
            worker.start()
            self.workers.append(worker)
        return count

    def join(self, timeout: float = 5):
        """等待 worker 退出，仍未退出的直接终止"""
        for worker in self.workers:
            worker.join(timeout=timeout)
            if worker.is_alive():
                logger.warning(f"{worker.name} 未按时退出，强制终止")
                worker.terminate()
                worker.join(timeout=1)
