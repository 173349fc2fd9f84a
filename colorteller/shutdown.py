"""
优雅关闭模块

状态流转: RUNNING -> DRAINING -> STOPPING -> STOPPED

- 第一次 SIGINT/SIGTERM: 关闭 keep-alive，进入排空等待 (termination_delay)
- 排空期间第二次信号: 立即停止
- 停止 server 有硬超时，超时视为致命错误，进程直接退出
- server 停止成功后才关闭 ShutdownToken，通知 CPU burn worker 和主线程
"""
import os
import signal
import logging
import multiprocessing
from queue import SimpleQueue, Empty
from threading import Lock, Thread
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ShutdownTimeoutError(RuntimeError):
    """server 未能在超时内停止"""


class ShutdownToken:
    """
    一次性广播的关闭信号

    底层是 multiprocessing.Event，线程和子进程都能观察到；
    close() 只会真正生效一次
    """

    def __init__(self):
        self._event = multiprocessing.Event()
        self._lock = Lock()

    @property
    def event(self):
        return self._event

    @property
    def closed(self) -> bool:
        return self._event.is_set()

    def close(self) -> bool:
        """关闭信号，返回本次调用是否真正关闭"""
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)


def _fatal(exc: BaseException):
    logger.critical(f"Could not gracefully shutdown the server: {exc}")
    logging.shutdown()
    os._exit(1)


class ShutdownCoordinator:
    """关闭协调器，每个进程一个，持有一个 server 和一个 ShutdownToken"""

    RUNNING = "RUNNING"
    DRAINING = "DRAINING"
    STOPPING = "STOPPING"
    STOPPED = "STOPPED"

    SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(self, server, token: ShutdownToken, termination_delay: float = 10,
                 shutdown_timeout: float = 30, on_fatal: Callable[[BaseException], None] = _fatal):
        self.server = server
        self.token = token
        self.termination_delay = max(termination_delay, 0)
        self.shutdown_timeout = shutdown_timeout
        self.on_fatal = on_fatal
        # SimpleQueue.put 可重入，能在信号处理函数中安全调用
        self.signals: SimpleQueue = SimpleQueue()
        self.state = self.RUNNING
        self.thread: Optional[Thread] = None
        self.lock = Lock()

    def install_signal_handlers(self):
        """注册信号处理，必须在主线程调用"""
        for sig in self.SIGNALS:
            signal.signal(sig, self.notify)

    def notify(self, signum, frame=None):
        """信号处理函数，只负责把信号放入队列"""
        self.signals.put(signum)

    @property
    def shutting_down(self) -> bool:
        return self.state != self.RUNNING

    def start(self) -> Thread:
        """启动协调线程"""
        if self.thread is not None:
            return self.thread
        self.thread = Thread(target=self.run, name="ShutdownCoordinator", daemon=True)
        self.thread.start()
        return self.thread

    def run(self):
        """协调线程主流程"""
        sig = self.signals.get()
        self._transition(self.DRAINING)
        # 必须先关闭 keep-alive 再开始计时
        self.server.set_keep_alives_enabled(False)
        logger.info(f"Signal {_signal_name(sig)} caught. Shutting down in {self.termination_delay}s")

        # 计时器与第二次信号，先到者胜
        try:
            second = self.signals.get(timeout=self.termination_delay)
            logger.info(f"Second signal {_signal_name(second)} caught. Shutting down NOW")
        except Empty:
            pass

        self._transition(self.STOPPING)
        try:
            stopped = self.server.shutdown(timeout=self.shutdown_timeout)
            if not stopped:
                raise ShutdownTimeoutError(
                    f"server did not stop within {self.shutdown_timeout}s"
                )
        except Exception as e:
            self.on_fatal(e)
            return

        self.token.close()
        self._transition(self.STOPPED)

    def _transition(self, state: str):
        with self.lock:
            logger.debug(f"[Shutdown] {self.state} -> {state}")
            self.state = state


def _signal_name(signum) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return str(signum)
