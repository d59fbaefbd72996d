"""Console presentation helpers with graceful fallbacks."""
from __future__ import annotations

import os
import shutil
import sys
from typing import Iterable, Optional

try:  # optional dependency
    import colorama
    from colorama import Fore, Style
except Exception:  # pragma: no cover - optional dep
    colorama = None
    Fore = None  # type: ignore[assignment]
    Style = None  # type: ignore[assignment]

try:  # optional dependency
    import pyfiglet
except Exception:  # pragma: no cover - optional dep
    pyfiglet = None

__all__ = [
    "init",
    "banner",
    "step_header",
    "running_panel",
    "section",
    "kv",
    "bullet",
    "info",
    "success",
    "warning",
    "error",
    "elapsed",
    "blocks",
    "rule",
    "line",
]

_width = 100
_plain_mode = False
_use_color = False
_prefix = {"info": "", "success": "", "warning": "", "error": "", "heading": ""}

_FANCY_SYMBOLS = {"info": "›", "success": "✓", "warning": "!", "error": "✗", "bullet": "•"}
_PLAIN_SYMBOLS = {"info": "[i]", "success": "[OK]", "warning": "[!]", "error": "[X]", "bullet": "-"}
_symbols = dict(_FANCY_SYMBOLS)


def init(plain: bool = False) -> None:
    """Initialise console helpers; ``plain`` or ``NO_COLOR`` forces ASCII output."""

    global _width, _plain_mode, _use_color, _prefix, _symbols

    _width = shutil.get_terminal_size(fallback=(100, 24)).columns or 100

    try:
        is_tty = bool(sys.stdout.isatty())
    except (AttributeError, ValueError):  # pragma: no cover - detached stdout
        is_tty = False

    _plain_mode = plain or bool(os.environ.get("NO_COLOR")) or not is_tty
    _use_color = not _plain_mode and colorama is not None
    if _use_color:
        colorama.init(autoreset=True)

    _symbols = dict(_PLAIN_SYMBOLS if _plain_mode else _FANCY_SYMBOLS)

    if _use_color:
        _prefix = {
            "info": Fore.CYAN,
            "success": Fore.GREEN + Style.BRIGHT,
            "warning": Fore.YELLOW + Style.BRIGHT,
            "error": Fore.RED + Style.BRIGHT,
            "heading": Fore.MAGENTA + Style.BRIGHT,
        }
    else:
        _prefix = {key: "" for key in _prefix}


def _apply(kind: str, message: str) -> str:
    if not _use_color:
        return message
    return f"{_prefix[kind]}{message}{Style.RESET_ALL}"


def rule(char: str = "=", width: Optional[int] = None) -> None:
    """Print a horizontal rule spanning the console width."""

    count = width if width is not None else _width
    print(char * max(1, count))


def banner(title: str) -> None:
    if _plain_mode or pyfiglet is None:
        print(f"=== {title} ===".center(_width))
        return
    print(pyfiglet.figlet_format(title, width=_width))


def step_header(i: int, n: int, title: str) -> None:
    print(_apply("info", f"[{i}/{n}] Preparing to run: {title}"))


def running_panel(title: str, script: str | None = None) -> None:
    rule("=")
    print(_apply("heading", f"RUNNING: {title}"))
    print(f"Module: {script or 'n/a'}")
    rule("=")


def section(title: str) -> None:
    rule("=")
    print(f" {title.upper()}")
    rule("=")


def kv(key: str, value: str) -> None:
    print(f"{key}: {value}")


def bullet(msg: str) -> None:
    print(f"{_symbols['bullet']} {msg}")


def info(msg: str) -> None:
    print(_apply("info", f"{_symbols['info']} {msg}"))


def success(msg: str) -> None:
    print(_apply("success", f"{_symbols['success']} {msg}"))


def warning(msg: str) -> None:
    print(_apply("warning", f"{_symbols['warning']} {msg}"))


def error(msg: str) -> None:
    print(_apply("error", f"{_symbols['error']} {msg}"))


def elapsed(prefix: str, seconds: float) -> None:
    print(f"{prefix} {seconds:.2f}s")


def blocks(label: str, values: Iterable[int], *, head_digits: int = 16, limit: int = 8) -> None:
    """Print the first few big-integer cipher blocks, each shortened to its leading digits."""

    values = list(values)
    print(f"{label} ({len(values)} block(s)):")
    for index, value in enumerate(values[:limit]):
        text = str(value)
        if len(text) > head_digits:
            text = text[:head_digits] + f"… ({len(str(value))} digits)"
        print(f"      [{index:02d}] {text}")
    if len(values) > limit:
        print(f"      ... {len(values) - limit} more")


def line() -> None:
    """Print a thin separator line."""

    rule("-")
