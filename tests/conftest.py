"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

# 假工具脚本
FIXTURES_DIR = PROJECT_ROOT / "tests" / "fixtures"
FAKE_TOOL_PATH = FIXTURES_DIR / "fake_tool.py"


@pytest.fixture
def fake_tool() -> Path:
    """假工具脚本路径（作为第一个参数交给 Python 解释器）。"""
    return FAKE_TOOL_PATH


@pytest.fixture
def python_exe() -> str:
    """当前 Python 解释器，作为被包装的“原生工具”。"""
    return sys.executable


@pytest.fixture
def spawn_counter(monkeypatch: pytest.MonkeyPatch) -> list:
    """记录 subprocess.Popen 启动的进程（仍然真正启动进程）。"""
    import subprocess

    calls: list[subprocess.Popen] = []
    real_popen = subprocess.Popen

    def counting_popen(*args, **kwargs):
        process = real_popen(*args, **kwargs)
        calls.append(process)
        return process

    monkeypatch.setattr(subprocess, "Popen", counting_popen)
    return calls
