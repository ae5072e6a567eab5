"""
Logging and Console Utilities.

All user-facing output goes through the standard `logging` module, rendered
by a `rich` handler bound to a swappable console:

1.  **Logging helpers**: `log_info`, `log_success`, `log_warning` and
    `log_error` emit through the root logger with rich markup enabled; a
    custom SUCCESS level sits between INFO and WARNING.
2.  **Console proxy**: `console` forwards to a replaceable `rich` Console so
    tests (or embedding applications) can capture output with `set_console`
    without re-importing modules that already hold a reference.
"""

import logging
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

SUCCESS_LEVEL_NUM = 25
logging.addLevelName(SUCCESS_LEVEL_NUM, "SUCCESS")

_THEME = Theme(
  {
    "logging.level.success": "green",
    "info": "dim cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "green",
    "path": "bold blue",
    "code": "bold magenta",
    "review": "bold yellow",
  }
)


class _ConsoleProxy:
  """
  Forwards printing to a replaceable `rich.console.Console`.

  Swapping the backend also re-binds the root logger's `RichHandler`, so
  `logging` output follows the console.
  """

  def __init__(self) -> None:
    self._backend: Console = Console(theme=_THEME)
    self._configure_logging()

  def set_backend(self, new_console: Console) -> None:
    """
    Replaces the active console.

    The cy2pw theme is pushed onto it so styles such as `path` or `review`
    resolve on consoles built without it.

    Args:
        new_console (Console): The console that receives all further output.
    """
    new_console.push_theme(_THEME)
    self._backend = new_console
    self._configure_logging()

  def reset(self) -> None:
    self._backend = Console(theme=_THEME)
    self._configure_logging()

  @property
  def backend(self) -> Console:
    return self._backend

  def _configure_logging(self) -> None:
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
      if isinstance(handler, RichHandler):
        root_logger.removeHandler(handler)

    rich_handler = RichHandler(
      console=self._backend,
      show_time=False,
      show_path=False,
      markup=True,
      rich_tracebacks=True,
    )
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(rich_handler)

  def print(self, *args: Any, **kwargs: Any) -> None:
    self._backend.print(*args, **kwargs)

  def __getattr__(self, name: str) -> Any:
    return getattr(self._backend, name)


console = _ConsoleProxy()


def set_console(new_console: Console) -> None:
  """
  Redirects console and logging output to `new_console`.

  Args:
      new_console (Console): A configured Rich console, e.g. one recording
          into a buffer.
  """
  console.set_backend(new_console)


def reset_console() -> None:
  console.reset()


def get_console() -> Console:
  return console.backend


def log_info(msg: str) -> None:
  """
  Logs an informational message.

  Args:
      msg (str): Message text; rich markup such as `[path]...[/path]` is allowed.
  """
  logging.info(f"ℹ️  {msg}", extra={"markup": True})


def log_success(msg: str) -> None:
  logging.log(SUCCESS_LEVEL_NUM, f"✅ {msg}", extra={"markup": True})


def log_warning(msg: str) -> None:
  logging.warning(f"⚠️  {msg}", extra={"markup": True})


def log_error(msg: str) -> None:
  logging.error(f"❌ {msg}", extra={"markup": True})
