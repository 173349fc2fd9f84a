"""
colorteller - 主入口
启动 HTTP 服务、CPU 负载 worker 和关闭协调器
"""
import sys
import logging
import argparse
from pathlib import Path

from .config import init_config, EnvOverrides
from .palette import get_picker
from .policy import RequestPolicy
from .api import create_app
from .server import ColorServer, parse_listen_addr
from .burner import CpuBurner, BurnConfigError
from .shutdown import ShutdownToken, ShutdownCoordinator

# 主线程等待 ShutdownToken 时的轮询间隔，同时用于检测 server 线程异常退出
POLL_INTERVAL_SECONDS = 0.5


def setup_logging(log_level: str = "INFO", log_file: str = None):
    """配置日志"""
    level = getattr(logging, log_level.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='colorteller - 返回颜色的诊断服务，可注入延迟、失败和 CPU 负载')
    parser.add_argument('--config-dir', type=str, help='配置文件目录')
    parser.add_argument('--listen-addr', type=str, help='服务监听地址 (默认 :8080)')
    parser.add_argument('--termination-delay', type=int, help='收到退出信号后的等待秒数 (默认 10)')
    parser.add_argument('--cpu-burn', type=str, help="烧 CPU 的 worker 数量 (数字或 'all')")
    parser.add_argument('--static-dir', type=str, help='静态文件目录 (默认当前目录)')
    parser.add_argument('--log-level', type=str, help='日志级别')
    return parser


def main(argv=None) -> int:
    """主入口函数，返回进程退出码"""
    args = build_parser().parse_args(argv)

    config = init_config(args.config_dir)
    if args.listen_addr is not None:
        config.server.listen_addr = args.listen_addr
    if args.termination_delay is not None:
        config.server.termination_delay = args.termination_delay
    if args.cpu_burn is not None:
        config.server.cpu_burn = args.cpu_burn
    if args.static_dir is not None:
        config.server.static_dir = args.static_dir
    if args.log_level is not None:
        config.system.log_level = args.log_level

    setup_logging(
        log_level=config.system.log_level,
        log_file=config.system.log_file or None
    )
    logger = logging.getLogger(__name__)

    try:
        host, port = parse_listen_addr(config.server.listen_addr)
    except ValueError as e:
        logger.critical(str(e))
        return 1

    overrides = EnvOverrides.from_env()
    if overrides.color:
        logger.info(f"强制颜色: {overrides.color}")
    picker = get_picker()
    policy = RequestPolicy(overrides, picker)
    app = create_app(policy, picker, static_dir=config.server.static_dir)
    server = ColorServer(app, host, port, log_level=config.system.log_level)

    token = ShutdownToken()
    coordinator = ShutdownCoordinator(
        server,
        token,
        termination_delay=config.server.termination_delay,
        shutdown_timeout=config.server.shutdown_timeout_seconds,
    )
    coordinator.install_signal_handlers()
    coordinator.start()

    burner = CpuBurner(token)
    try:
        burner.start(config.server.cpu_burn)
    except BurnConfigError as e:
        logger.critical(str(e))
        return 1

    logger.info(f"Started server on {config.server.listen_addr}")
    server.start()

    while not token.wait(POLL_INTERVAL_SECONDS):
        if not server.running and not coordinator.shutting_down:
            logger.critical(f"Could not listen on {config.server.listen_addr}")
            token.close()
            burner.join(timeout=1)
            return 1

    burner.join()
    logger.info("Server stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
