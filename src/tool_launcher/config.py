"""NTL 环境变量配置管理。

环境变量:
    NTL_TIMEOUT: 子进程超时时间（秒）
        - 空/未设置/0 = 不限制 (默认)
        - 超时后终止子进程，启动器返回 1

    NTL_TERM_TIMEOUT: 发送 SIGTERM 后等待退出的时间（秒）
        - 默认 2.0 秒
        - 限制在 0.1-60 秒范围

    NTL_ENCODING: 子进程输出的解码方式
        - 空/未设置 = 系统首选编码 (默认)
        - 例: "utf-8" 或 "cp437"
        - 未知编码按未设置处理

    NTL_RAW_ARGS: 参数拼接方式
        - true/1/yes = 直接以空格拼接，不加引号转义
        - false/0/no = 按 Windows 规则转义 (默认)

    NTL_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (DEBUG 日志输出到临时文件)
        - false/0/no = 关闭 (默认，日志输出到 stderr)

    NTL_LOG_LEVEL: stderr 日志级别（非调试模式）
        - DEBUG/INFO/WARNING/ERROR
        - 默认 WARNING，避免混入被转发的工具输出
"""

from __future__ import annotations

import codecs
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config"]

DEFAULT_TERM_TIMEOUT = 2.0
DEFAULT_LOG_LEVEL = logging.WARNING


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_timeout(value: str | None) -> float | None:
    """解析超时环境变量。

    Args:
        value: 环境变量值（秒）

    Returns:
        超时秒数，None 表示不限制（空值、0、负数、非法值）
    """
    if not value or not value.strip():
        return None
    try:
        timeout = float(value)
    except ValueError:
        return None
    return timeout if timeout > 0 else None


def _parse_term_timeout(value: str | None) -> float:
    """解析 SIGTERM 等待时间环境变量。"""
    if not value:
        return DEFAULT_TERM_TIMEOUT
    try:
        window = float(value)
        return max(0.1, min(window, 60.0))  # 限制在 0.1-60 秒范围
    except ValueError:
        return DEFAULT_TERM_TIMEOUT


def _parse_encoding(value: str | None) -> str | None:
    """解析编码环境变量，未知编码返回 None（使用系统首选编码）。"""
    if not value or not value.strip():
        return None
    try:
        return codecs.lookup(value.strip()).name
    except LookupError:
        return None


def _parse_log_level(value: str | None) -> int:
    """解析日志级别环境变量，无效值返回 WARNING。"""
    if not value:
        return DEFAULT_LOG_LEVEL
    level = logging.getLevelName(value.strip().upper())
    return level if isinstance(level, int) else DEFAULT_LOG_LEVEL


@dataclass
class Config:
    """NTL 配置。

    Attributes:
        timeout: 子进程超时时间（秒），None 表示不限制
        term_timeout: SIGTERM 后等待退出的时间（秒）
        encoding: 子进程输出编码，None 表示系统首选编码
        raw_args: 是否跳过参数转义
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
        log_level: stderr 日志级别
    """

    timeout: float | None = None
    term_timeout: float = DEFAULT_TERM_TIMEOUT
    encoding: str | None = None
    raw_args: bool = False
    log_debug: bool = False
    log_file: str | None = None
    log_level: int = DEFAULT_LOG_LEVEL

    def __repr__(self) -> str:
        return (
            f"Config(timeout={self.timeout}, "
            f"term_timeout={self.term_timeout}, "
            f"encoding={self.encoding or 'default'}, "
            f"raw_args={self.raw_args}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file}, "
            f"log_level={logging.getLevelName(self.log_level)})"
        )


def _generate_log_file_path() -> str:
    """生成日志文件路径。

    Returns:
        临时目录下的日志文件绝对路径
    """
    # 使用系统临时目录下的 native-tool-launcher 子目录
    log_dir = Path(tempfile.gettempdir()) / "native-tool-launcher"
    log_dir.mkdir(parents=True, exist_ok=True)

    # 生成带时间戳的文件名
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"ntl_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("NTL_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        timeout=_parse_timeout(os.environ.get("NTL_TIMEOUT")),
        term_timeout=_parse_term_timeout(os.environ.get("NTL_TERM_TIMEOUT")),
        encoding=_parse_encoding(os.environ.get("NTL_ENCODING")),
        raw_args=_parse_bool(os.environ.get("NTL_RAW_ARGS"), default=False),
        log_debug=log_debug,
        log_file=log_file,
        log_level=_parse_log_level(os.environ.get("NTL_LOG_LEVEL")),
    )


# 全局配置实例（延迟加载）
_config: Config | None = None


def get_config() -> Config:
    """获取全局配置实例。"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """重新加载配置（用于测试）。"""
    global _config
    _config = load_config()
    return _config
