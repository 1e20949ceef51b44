"""Native Tool Launcher - 原生命令行工具启动器。

环境变量:
    NTL_TIMEOUT: 子进程超时时间（默认不限制）
    NTL_RAW_ARGS: 不转义参数 (默认 false)
    NTL_LOG_DEBUG: 日志输出到临时文件 (默认 false)

用法:
    wix-wrapper C:\\...\\wix.exe build -out Product.msi Product.wxs
"""

__version__ = "0.1.0"

from .app import launch, main
from .quoting import join_arguments, quote_argument, split_command_line

__all__ = [
    "__version__",
    "launch",
    "main",
    "join_arguments",
    "quote_argument",
    "split_command_line",
]
