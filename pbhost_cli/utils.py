"""Plain console messages and prompts for pbhost commands"""

import os
import sys

_RESET = "\033[0m"
_COLORS = {
    "green": "\033[32m",
    "red": "\033[31m",
    "yellow": "\033[33m",
    "gray": "\033[90m",
}


def _use_color(stream) -> bool:
    return not os.environ.get("NO_COLOR") and stream.isatty()


def _emit(prefix: str, text: str, color: str | None = None, stream=None):
    # Resolved per call so redirected streams are honoured
    stream = stream or sys.stdout
    if color and _use_color(stream):
        prefix = f"{_COLORS[color]}{prefix}{_RESET}"
    print(f"{prefix} {text}", file=stream)


def msg_success(text: str):
    _emit("[ok]", text, "green")


def msg_error(text: str):
    """Errors go to stderr so `list --json` output stays clean"""
    _emit("[x]", text, "red", sys.stderr)


def msg_warning(text: str):
    _emit("[!]", text, "yellow")


def msg_info(text: str):
    _emit(">", text)


def msg_step(current: int, total: int, text: str):
    _emit(f"[{current}/{total}]", text, "gray")


def confirm(question: str, default: bool = False) -> bool:
    """Ask a yes/no question. Non-interactive input gets the default."""
    if not sys.stdin.isatty():
        return default
    suffix = "[Y/n]" if default else "[y/N]"
    try:
        answer = input(f"{question} {suffix}: ").strip().lower()
    except EOFError:
        return default
    if not answer:
        return default
    return answer in ("y", "yes")
