"""Native Tool Launcher 应用入口。

包含启动器主流程（参数检查、错误映射、退出码传递）和 console script 入口点。
"""

from __future__ import annotations

import logging
import sys
import traceback
from collections.abc import Callable, Sequence
from functools import partial
from typing import TextIO

import anyio

from .config import Config, get_config
from .errors import LaunchKilledError, SpawnFailedError, TargetNotFoundError
from .profiles import LauncherProfile, get_profile
from .quoting import join_arguments
from .runtime import ProcessRunner, ProcessSpec

__all__ = [
    "launch",
    "configure_logging",
    "main",
    "mage_main",
    "signtool_main",
    "wix_main",
]

logger = logging.getLogger(__name__)


def _line_writer(stream: TextIO) -> Callable[[str], None]:
    """创建逐行转发回调（每行立即 flush）。"""

    def write(line: str) -> None:
        stream.write(line + "\n")
        stream.flush()

    return write


def build_command_line(
    arguments: Sequence[str],
    profile: LauncherProfile,
    config: Config,
) -> str:
    """按配置档拼接命令行。

    Args:
        arguments: 转发给工具的参数
        profile: 启动器配置档
        config: 配置（NTL_RAW_ARGS 可强制不转义）

    Returns:
        单个命令行字符串
    """
    if profile.quote_arguments and not config.raw_args:
        return join_arguments(arguments)
    return " ".join(arguments)


def launch(
    argv: Sequence[str],
    profile: LauncherProfile,
    *,
    config: Config | None = None,
    runner: ProcessRunner | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> int:
    """运行一次启动器。

    所有错误都在这里处理，进程边界之外只能看到退出码和输出文本。

    Args:
        argv: 命令行参数（不含启动器自身），argv[0] 为工具路径
        profile: 启动器配置档
        config: 配置（默认从环境变量读取）
        runner: 进程执行器（默认按配置创建）
        stdout: 输出流（默认 sys.stdout）
        stderr: 错误流（默认 sys.stderr）

    Returns:
        启动器退出码：参数不足/找不到工具/启动异常为 1，否则为工具的退出码
    """
    config = config or get_config()
    out = stdout or sys.stdout
    err = stderr or sys.stderr
    label = profile.tool_label

    if len(argv) < 2:
        for line in profile.usage_lines():
            print(line, file=out)
        return 1

    executable, *arguments = argv
    command_line = build_command_line(arguments, profile, config)
    logger.debug(f"Launching {label}: executable={executable} command_line={command_line}")

    if runner is None:
        runner = ProcessRunner(term_timeout=config.term_timeout, encoding=config.encoding)
    spec = ProcessSpec(executable=executable, command_line=command_line)

    try:
        result = anyio.run(
            partial(
                runner.run,
                spec,
                on_stdout=_line_writer(out),
                on_stderr=_line_writer(err),
                timeout=config.timeout,
            )
        )
    except TargetNotFoundError as e:
        print(f"ERROR: {label} not found at: {e.path}", file=err)
        return 1
    except SpawnFailedError as e:
        print(f"ERROR: Failed to execute {label}: {e.message}", file=err)
        return 1
    except LaunchKilledError as e:
        print(f"ERROR: {label} killed after {e.timeout:g}s timeout", file=err)
        return 1
    except Exception as e:
        logger.debug(f"Unexpected error while running {label}", exc_info=True)
        print(f"ERROR: Failed to execute {label}: {e}", file=err)
        print(f"Stack trace: {traceback.format_exc()}", file=err)
        return 1

    if result.exit_code != 0:
        print(f"{label} exited with code {result.exit_code}", file=err)

    logger.debug(
        f"{label} finished: exit_code={result.exit_code} "
        f"duration={result.duration:.2f}s"
    )
    return result.exit_code


def configure_logging(config: Config) -> None:
    """配置日志输出。"""
    log_handlers: list[logging.Handler] = []
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    if config.log_debug and config.log_file:
        # LOG_DEBUG 模式：输出到临时文件
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        # 默认模式：输出到 stderr（与被转发的工具 stderr 共用，默认只输出警告）
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(formatter)
        log_handlers.append(stderr_handler)
        log_level = config.log_level

    # 配置 root logger（第三方库）为 WARNING，减少噪音
    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    # 只对 tool_launcher 命名空间启用详细日志
    logging.getLogger("tool_launcher").setLevel(log_level)


def _run_profile(profile_name: str) -> None:
    config = get_config()
    configure_logging(config)
    logger.debug(f"Starting {profile_name} launcher: {config}")
    sys.exit(launch(sys.argv[1:], get_profile(profile_name), config=config))


def main() -> None:
    """通用启动器入口点。"""
    _run_profile("tool")


def mage_main() -> None:
    """mage.exe 启动器入口点。"""
    _run_profile("mage")


def signtool_main() -> None:
    """signtool.exe 启动器入口点。"""
    _run_profile("signtool")


def wix_main() -> None:
    """wix.exe 启动器入口点。"""
    _run_profile("wix")


if __name__ == "__main__":
    main()
