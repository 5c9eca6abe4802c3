"""Human readable output of the CLI. Tasks are single lines prefixed by their state and
tables are drawn with box characters.
"""

from .lang import get_raw as _raw

import shutil
import sys

from typing import List, Optional


STATE_COLORS = {
    "OK": "\033[92m",
    "FAILED": "\033[31m",
    "WARN": "\033[33m",
    "INFO": "\033[34m",
    "HALT": "\033[33m",
}

# Length of the state prefix, like "[  OK  ] ".
STATE_LEN = 9


class Table:
    """Rows of cells printed at once, a None row is a separator.
    """

    def __init__(self) -> None:
        self.rows: List[Optional[List[str]]] = []

    def add(self, *cells) -> None:
        self.rows.append([str(cell) for cell in cells])

    def separator(self) -> None:
        self.rows.append(None)

    def widths(self) -> List[int]:
        widths = []
        for row in self.rows:
            for i, cell in enumerate(row or ()):
                if i < len(widths):
                    widths[i] = max(widths[i], len(cell))
                else:
                    widths.append(len(cell))
        return widths

    def render(self) -> List[str]:
        """Render the lines of the table, rows shorter than others are padded with empty
        cells.
        """

        widths = self.widths()

        def border(left: str, middle: str, right: str) -> str:
            return left + middle.join("─" * (width + 2) for width in widths) + right

        lines = [border("┌", "┬", "┐")]
        for row in self.rows:
            if row is None:
                lines.append(border("├", "┼", "┤"))
            else:
                cells = row + [""] * (len(widths) - len(row))
                lines.append("│ " + " │ ".join(cell.ljust(width) for cell, width in zip(cells, widths)) + " │")
        lines.append(border("└", "┴", "┘"))

        return lines

    def print(self) -> None:
        print("\n".join(self.render()))


class Output:
    """Output of the CLI, each task is a line starting with its state, like `[  OK  ]`,
    the line is rewritten while the task is in progress until it is finished.
    """

    def __init__(self, color: bool) -> None:
        self.color = color
        self.line_len: Optional[int] = None

    def table(self) -> Table:
        return Table()

    def format_state(self, state: Optional[str]) -> str:
        if state is None:
            return " " * STATE_LEN
        color = STATE_COLORS.get(state) if self.color else None
        if color is None:
            return f"[{state:^6s}] "
        return f"[{color}{state:^6s}\033[0m] "

    def task(self, state: Optional[str], key: Optional[str], **kwargs) -> None:
        """Update the current task, or start one, with the given state and message. The
        message is truncated to the terminal width.
        """

        msg = "" if key is None else _raw(key, kwargs)

        term_width = shutil.get_terminal_size().columns
        if term_width >= 20 and len(msg) + STATE_LEN > term_width:
            msg = f"{msg[:term_width - STATE_LEN - 3]}..."

        # Erase the rest of the previous message of the line.
        padding = " " * max(0, (self.line_len or 0) - len(msg))

        sys.stdout.write(f"\r{self.format_state(state)}{msg}{padding}")
        sys.stdout.flush()
        self.line_len = len(msg)

    def finish(self) -> None:
        """Finish the current task, if any.
        """
        if self.line_len is not None:
            sys.stdout.write("\n")
            self.line_len = None
