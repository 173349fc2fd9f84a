"""
HTTP 服务封装 - 在后台线程中运行 uvicorn

uvicorn 不在主线程时不会注册自己的信号处理，信号统一交给 ShutdownCoordinator
"""
import logging
from threading import Event, Thread
from typing import Optional, Tuple

import uvicorn
from fastapi import FastAPI

logger = logging.getLogger(__name__)


def parse_listen_addr(addr: str) -> Tuple[str, int]:
    """
    解析 host:port 形式的监听地址

    host 为空时监听所有地址，IPv6 需要写成 [::1]:8080
    """
    host, sep, port = addr.rpartition(":")
    if not sep:
        raise ValueError(f"invalid listen address {addr!r}: missing port")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port_num = int(port)
    except ValueError:
        raise ValueError(f"invalid listen address {addr!r}: bad port {port!r}")
    if not 0 <= port_num <= 65535:
        raise ValueError(f"invalid listen address {addr!r}: port out of range")
    return host or "0.0.0.0", port_num


class ColorServer:
    """uvicorn server，支持关闭 keep-alive 和带超时的优雅停止"""

    def __init__(self, app: FastAPI, host: str, port: int, log_level: str = "info"):
        self.app = app
        self.host = host
        self.port = port
        config = uvicorn.Config(
            app,
            host=host,
            port=port,
            log_level=log_level.lower(),
            access_log=False,
        )
        self.server = uvicorn.Server(config)
        self.thread: Optional[Thread] = None
        self.stopped = Event()

    @property
    def running(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    def start(self) -> Thread:
        """在后台线程启动 server"""
        self.thread = Thread(target=self._serve, name="ColorServer", daemon=True)
        self.thread.start()
        return self.thread

    def _serve(self):
        try:
            self.server.run()
        except SystemExit:
            # 端口绑定失败时 uvicorn 会调用 sys.exit
            logger.error(f"Could not listen on {self.host}:{self.port}")
        finally:
            self.stopped.set()

    def set_keep_alives_enabled(self, enabled: bool):
        if enabled:
            self.app.state.keep_alive.set()
        else:
            self.app.state.keep_alive.clear()

    def shutdown(self, timeout: float) -> bool:
        """
        停止接收新连接并等待进行中的请求完成

        Returns:
            是否在 timeout 内停止
        """
        self.server.should_exit = True
        if self.thread is None:
            return True
        return self.stopped.wait(timeout)
