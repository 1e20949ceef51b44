"""Launcher 配置档。

每个被包装的工具只在诊断信息中的名称和是否转义参数上不同，
因此用一个 LauncherProfile 描述，而不是为每个工具复制启动器。
"""

from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "LauncherProfile",
    "PROFILES",
    "get_profile",
]


@dataclass(frozen=True)
class LauncherProfile:
    """单个启动器的配置档。

    Attributes:
        name: 配置档名称（同时用于 usage 中的 <name>_wrapper）
        tool_label: 诊断信息中的工具名，如 "mage.exe"
        example: usage 示例中的工具参数
        quote_arguments: 是否按 Windows 规则转义参数
    """

    name: str
    tool_label: str
    example: str
    quote_arguments: bool = True

    @property
    def program_name(self) -> str:
        return f"{self.name}_wrapper"

    def usage_lines(self) -> list[str]:
        """生成 usage 文本（每行一个元素）。"""
        stem = self.tool_label.removesuffix(".exe")
        return [
            f"Usage: {self.program_name} <{self.tool_label} path> <{stem} arguments...>",
            f"Example: {self.program_name} C:\\...\\{self.tool_label} {self.example}",
        ]


MAGE = LauncherProfile(
    name="mage",
    tool_label="mage.exe",
    example="-New Application -ToFile MyApp.exe.manifest",
)

SIGNTOOL = LauncherProfile(
    name="signtool",
    tool_label="signtool.exe",
    example="sign /f cert.pfx /p password file.manifest",
)

WIX = LauncherProfile(
    name="wix",
    tool_label="wix.exe",
    example="build -out Product.msi Product.wxs",
)

GENERIC = LauncherProfile(
    name="tool",
    tool_label="tool",
    example="--help",
)

PROFILES: dict[str, LauncherProfile] = {
    profile.name: profile for profile in (MAGE, SIGNTOOL, WIX, GENERIC)
}


def get_profile(name: str) -> LauncherProfile:
    """按名称获取配置档。

    Raises:
        KeyError: 未知的配置档名称
    """
    try:
        return PROFILES[name.lower()]
    except KeyError:
        raise KeyError(f"Unknown launcher profile: {name!r}") from None
