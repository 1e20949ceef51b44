"""Native Tool Launcher 入口点。

支持: python -m tool_launcher <tool path> <tool arguments...>
"""

from .app import main

if __name__ == "__main__":
    main()
