"""Launcher 异常类。

native-tool-launcher v0.1.0
"""

from __future__ import annotations

__all__ = [
    "LaunchError",
    "TargetNotFoundError",
    "SpawnFailedError",
    "LaunchKilledError",
]


class LaunchError(Exception):
    """启动目标程序失败的基础异常。"""
    pass


class TargetNotFoundError(LaunchError):
    """目标可执行文件不存在（未启动任何进程）。

    Attributes:
        path: 请求的可执行文件路径
    """

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"executable not found: {path}")


class SpawnFailedError(LaunchError):
    """操作系统无法启动进程（权限、损坏的可执行文件、资源耗尽）。

    Attributes:
        message: 底层错误消息
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class LaunchKilledError(LaunchError):
    """子进程超时被终止。

    Attributes:
        timeout: 超时时间（秒）
        pid: 被终止的进程 ID
    """

    def __init__(self, timeout: float, pid: int | None = None) -> None:
        self.timeout = timeout
        self.pid = pid
        super().__init__(f"process killed after {timeout:g}s timeout")
