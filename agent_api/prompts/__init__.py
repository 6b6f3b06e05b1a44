"""系统提示词加载工具。

按 Agent 类型和语言(locale) 从 prompts/<locale>/ 目录读取 system prompt，
找不到对应文件时回退到 default.md。
"""

from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent


def load_system_prompt(agent_type: str, locale: str = "en") -> str:
    base = PROMPTS_DIR / locale
    fname = base / f"{agent_type}.md"
    if not fname.exists():
        fname = base / "default.md"
    return fname.read_text(encoding="utf-8").strip()
