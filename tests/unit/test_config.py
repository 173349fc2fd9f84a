#!/usr/bin/env python3
"""
单元1: 配置模块测试

测试内容：
- 默认配置
- config.yml 加载
- 环境变量解析
- 环境变量覆盖快照 (COLOR / ERROR_RATE / LATENCY)
"""
import os
import sys
import pytest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from colorteller.config import (
    Config,
    init_config,
    get_config,
    ServerConfig,
    SystemConfig,
    EnvOverrides,
    OverrideError,
)


class TestServerConfig:
    """ServerConfig 默认值测试"""

    def test_server_config_defaults(self):
        """测试默认值"""
        srv = ServerConfig()
        assert srv.listen_addr == ":8080"
        assert srv.termination_delay == 10
        assert srv.shutdown_timeout_seconds == 30
        assert srv.cpu_burn == ""
        assert srv.static_dir == "./"

    def test_system_config_defaults(self):
        sys_cfg = SystemConfig()
        assert sys_cfg.log_level == "INFO"
        assert sys_cfg.log_file == ""


class TestConfigFile:
    """config.yml 加载测试"""

    def test_load_repo_config(self):
        """测试加载仓库自带的 config.yml"""
        config = init_config()
        assert config.server.listen_addr == ":8080"
        assert config.server.termination_delay == 10
        assert config.server.cpu_burn == ""

    def test_missing_config_uses_defaults(self, tmp_path):
        """测试配置文件不存在时使用默认值"""
        config = Config(str(tmp_path))
        assert config.server.listen_addr == ":8080"
        assert config.system.log_level == "INFO"

    def test_custom_config(self, tmp_path):
        """测试自定义配置"""
        (tmp_path / "config.yml").write_text(
            "server:\n"
            "  listen_addr: '127.0.0.1:9000'\n"
            "  termination_delay: 3\n"
            "  cpu_burn: 2\n"
            "system:\n"
            "  log_level: DEBUG\n",
            encoding="utf-8",
        )
        config = Config(str(tmp_path))
        assert config.server.listen_addr == "127.0.0.1:9000"
        assert config.server.termination_delay == 3
        assert config.server.cpu_burn == "2"
        assert config.system.log_level == "DEBUG"

    def test_empty_config_file(self, tmp_path):
        """测试空配置文件"""
        (tmp_path / "config.yml").write_text("", encoding="utf-8")
        config = Config(str(tmp_path))
        assert config.server.termination_delay == 10


class TestEnvVariableResolution:
    """环境变量解析测试"""

    def test_resolve_env_with_value(self, monkeypatch):
        """测试环境变量解析 - 有值"""
        monkeypatch.setenv('TEST_LISTEN_ADDR', ':9999')
        config = Config()
        assert config._resolve_env('${TEST_LISTEN_ADDR}') == ':9999'

    def test_resolve_env_without_value(self, monkeypatch):
        """测试环境变量解析 - 无值"""
        monkeypatch.delenv('NONEXISTENT_KEY', raising=False)
        config = Config()
        assert config._resolve_env('${NONEXISTENT_KEY}') == ''

    def test_resolve_env_plain_string(self):
        """测试环境变量解析 - 普通字符串"""
        config = Config()
        assert config._resolve_env('plain-string') == 'plain-string'

    def test_listen_addr_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv('COLORTELLER_ADDR', ':7070')
        (tmp_path / "config.yml").write_text(
            "server:\n  listen_addr: ${COLORTELLER_ADDR}\n", encoding="utf-8"
        )
        config = Config(str(tmp_path))
        assert config.server.listen_addr == ":7070"


class TestEnvOverrides:
    """环境变量覆盖测试"""

    def test_from_env(self):
        overrides = EnvOverrides.from_env({"COLOR": "blue", "ERROR_RATE": "50", "LATENCY": "2"})
        assert overrides.color == "blue"
        assert overrides.forced_error_rate() == 50
        assert overrides.forced_latency() == 2

    def test_unset_overrides(self):
        overrides = EnvOverrides.from_env({})
        assert overrides.color == ""
        assert overrides.forced_error_rate() is None
        assert overrides.forced_latency() is None

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("COLOR", "green")
        monkeypatch.delenv("ERROR_RATE", raising=False)
        monkeypatch.delenv("LATENCY", raising=False)
        overrides = EnvOverrides.from_env()
        assert overrides.color == "green"

    def test_snapshot_is_immutable(self):
        overrides = EnvOverrides.from_env({"COLOR": "red"})
        with pytest.raises(Exception):
            overrides.color = "blue"

    def test_invalid_latency(self):
        """LATENCY 非整数时在读取时报错，而不是构造时"""
        overrides = EnvOverrides.from_env({"LATENCY": "abc"})
        with pytest.raises(OverrideError):
            overrides.forced_latency()

    def test_invalid_error_rate(self):
        overrides = EnvOverrides.from_env({"ERROR_RATE": "1.5"})
        with pytest.raises(OverrideError) as exc_info:
            overrides.forced_error_rate()
        assert "ERROR_RATE" in str(exc_info.value)


class TestConfigSingleton:
    """配置单例测试"""

    def test_get_config_returns_same_instance(self):
        """测试 get_config 返回相同实例"""
        init_config()
        config1 = get_config()
        config2 = get_config()
        assert config1 is config2

    def test_init_config_creates_new_instance(self):
        """测试 init_config 创建新实例"""
        config1 = init_config()
        config2 = init_config()
        assert config1 is not config2
        assert get_config() is config2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
