"""
配置加载模块
"""
import os
import logging
import yaml
from pathlib import Path
from typing import Optional
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# 优雅关闭时延迟退出的默认秒数，给 ingress / 负载均衡留出摘除 Pod IP 的时间
DEFAULT_TERMINATION_DELAY = 10
# server 停止的硬超时
DEFAULT_SHUTDOWN_TIMEOUT = 30


class OverrideError(ValueError):
    """环境变量覆盖值无法解析"""


@dataclass
class ServerConfig:
    listen_addr: str = ":8080"
    termination_delay: int = DEFAULT_TERMINATION_DELAY
    shutdown_timeout_seconds: int = DEFAULT_SHUTDOWN_TIMEOUT
    cpu_burn: str = ""  # 数字或 "all"，空表示不烧 CPU
    static_dir: str = "./"


@dataclass
class SystemConfig:
    log_level: str = "INFO"
    log_file: str = ""


@dataclass(frozen=True)
class EnvOverrides:
    """
    进程级强制覆盖，启动时从环境变量读取一次，之后只读

    latency / error_rate 保留原始字符串，在请求时才解析，
    配置错误只会让单个请求返回 500，不影响进程启动
    """
    color: str = ""
    error_rate: str = ""
    latency: str = ""

    @classmethod
    def from_env(cls, environ=None) -> "EnvOverrides":
        if environ is None:
            environ = os.environ
        return cls(
            color=environ.get("COLOR", ""),
            error_rate=environ.get("ERROR_RATE", ""),
            latency=environ.get("LATENCY", ""),
        )

    def forced_latency(self) -> Optional[int]:
        """强制延迟秒数，未配置返回 None"""
        return _parse_override("LATENCY", self.latency)

    def forced_error_rate(self) -> Optional[int]:
        """强制失败率 (0-100)，未配置返回 None"""
        return _parse_override("ERROR_RATE", self.error_rate)


def _parse_override(name: str, raw: str) -> Optional[int]:
    if raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise OverrideError(f"{name}: invalid integer {raw!r}")


class Config:
    """全局配置类"""

    def __init__(self, config_dir: str = None):
        if config_dir is None:
            # 默认配置目录
            config_dir = Path(__file__).parent.parent / "config"

        self.config_dir = Path(config_dir)
        self.server = ServerConfig()
        self.system = SystemConfig()

        self._load_config()

    def _load_config(self):
        """加载主配置文件"""
        config_file = self.config_dir / "config.yml"
        if not config_file.exists():
            logger.warning(f"配置文件不存在 {config_file}，使用默认配置")
            return

        with open(config_file, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        # 服务配置
        srv_cfg = data.get('server') or {}
        self.server.listen_addr = str(self._resolve_env(srv_cfg.get('listen_addr', ':8080')))
        self.server.termination_delay = int(srv_cfg.get('termination_delay', DEFAULT_TERMINATION_DELAY))
        self.server.shutdown_timeout_seconds = int(
            srv_cfg.get('shutdown_timeout_seconds', DEFAULT_SHUTDOWN_TIMEOUT)
        )
        # yaml 里 cpu_burn: 4 会被解析成 int
        cpu_burn = self._resolve_env(srv_cfg.get('cpu_burn', ''))
        self.server.cpu_burn = "" if cpu_burn is None else str(cpu_burn)
        self.server.static_dir = self._resolve_env(srv_cfg.get('static_dir', './'))

        # 系统配置
        sys_cfg = data.get('system') or {}
        self.system.log_level = sys_cfg.get('log_level', 'INFO')
        self.system.log_file = self._resolve_env(sys_cfg.get('log_file', '')) or ''

    def _resolve_env(self, value):
        """解析环境变量 ${VAR_NAME}"""
        if not value or not isinstance(value, str):
            return value

        if value.startswith('${') and value.endswith('}'):
            env_name = value[2:-1]
            return os.environ.get(env_name, '')

        return value


# 全局配置实例
_config: Config = None


def get_config() -> Config:
    """获取全局配置"""
    global _config
    if _config is None:
        _config = Config()
    return _config


def init_config(config_dir: str = None):
    """初始化配置"""
    global _config
    _config = Config(config_dir)
    return _config
