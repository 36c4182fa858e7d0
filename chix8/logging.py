"""Console logging and scan progress for chix8 machines.

:class:`ConsoleLogger` is the levelled console logger a
:class:`chix8.machine.Machine` reports loads, resets and faults to. The tqdm
helpers drive a progress bar from inside a jitted ``jax.lax.scan`` through
``io_callback``.
"""

import time
import sys
from typing import Optional, Callable, Tuple

import jax
from jax.experimental import io_callback

from tqdm import tqdm

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_COLORS = {
    "DEBUG": "\033[36m",
    "ERROR": "\033[31m",
}
_RESET = "\033[0m"


class ConsoleLogger:
    """Console logger with levels, timestamps and optional colors.

    Messages below ``log_level`` are dropped; the level names are those of
    :data:`LEVELS`.
    """

    def __init__(
        self,
        name: str = "chix8",
        log_level: str = "WARNING",
        use_colors: bool = True,
        show_timestamps: bool = True,
    ):
        self.name = name
        self.log_level = log_level.upper()
        if self.log_level not in LEVELS:
            raise ValueError(f"Unknown log level {log_level!r}, expected one of {LEVELS}")
        self.use_colors = use_colors and sys.stdout.isatty()
        self.show_timestamps = show_timestamps
        self.start_time = time.time()

    def _format_message(self, level: str, message: str) -> str:
        timestamp = f"[{time.time() - self.start_time:8.2f}s]" if self.show_timestamps else ""
        level_str = f"[{level:>8s}]"
        if self.use_colors and level in _COLORS:
            level_str = f"{_COLORS[level]}{level_str}{_RESET}"
        return f"{timestamp}{level_str}[{self.name}] {message}"

    def log(self, level: str, message: str):
        """Print ``message`` if ``level`` is at or above the logger's level."""
        if LEVELS.index(level) >= LEVELS.index(self.log_level):
            print(self._format_message(level, message), flush=True)

    def debug(self, message: str):
        self.log("DEBUG", message)

    def error(self, message: str):
        self.log("ERROR", message)


def build_tqdm_progress_bar(
    n: int,
    print_rate: Optional[int] = None,
    desc: Optional[str] = None,
    **kwargs,
) -> Tuple[Callable, Callable]:
    """Build the open/update and close hooks of a tqdm bar over ``n`` scan iterations.

    The bar advances by ``print_rate`` every ``print_rate`` iterations and by
    whatever is left on the last iteration, so it always ends at ``n``.
    """
    if desc is None:
        desc = f"Running ({n:,} cycles)"

    for kwarg in ("total", "mininterval", "maxinterval", "miniters"):
        kwargs.pop(kwarg, None)

    if print_rate is None:
        print_rate = max(1, min(n // 20, 50))
    else:
        print_rate = max(1, min(print_rate, n))

    # Iterations completed since the last periodic update, counted at the last one.
    final_steps = (n - 1) % print_rate + 1

    bars = {}

    def _open():
        bars["bar"] = tqdm(total=n, desc=desc, unit="cycle", **kwargs)

    def _advance(steps):
        if "bar" in bars:
            bars["bar"].update(int(steps))

    def _close():
        if "bar" in bars:
            bars.pop("bar").close()

    def _when(predicate, callback, *args):
        jax.lax.cond(
            predicate,
            lambda: io_callback(callback, None, *args, ordered=True),
            lambda: None,
        )

    def update_progress_bar(iter_num):
        _when(iter_num == 0, _open)
        _when((iter_num > 0) & (iter_num % print_rate == 0), _advance, print_rate)
        _when(iter_num == n - 1, _advance, final_steps)

    def close_progress_bar(result, iter_num):
        _when(iter_num == n - 1, _close)
        return result

    return update_progress_bar, close_progress_bar


def scan_with_progress(
    n: int,
    print_rate: Optional[int] = None,
    desc: Optional[str] = None,
    **tqdm_kwargs,
) -> Callable:
    """Wrap a ``jax.lax.scan`` body so a tqdm bar follows its progress.

    The scanned ``xs`` must be the iteration index, or a tuple starting with it.
    """
    update_progress_bar, close_progress_bar = build_tqdm_progress_bar(
        n, print_rate, desc, **tqdm_kwargs
    )

    def decorator(func):
        def body(carry, x):
            iter_num = x[0] if isinstance(x, tuple) else x
            update_progress_bar(iter_num)
            return close_progress_bar(func(carry, x), iter_num)

        return body

    return decorator
