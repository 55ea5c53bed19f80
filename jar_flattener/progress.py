"""Stage progress rendering on stderr.

On an interactive terminal each stage runs under a ``rich`` status spinner that
refreshes on a fixed tick until the stage finishes. Otherwise each stage is a
single line written as soon as it starts and completed when it finishes, which
keeps CI logs readable.
"""

from dataclasses import dataclass, field
import sys
from typing import TextIO

from rich.console import Console
from rich.markup import escape
from rich.status import Status

_SPINNER: str = "dots"
_REFRESH_PER_SECOND: float = 12.5


@dataclass(slots=True)
class StageHandle:
    """A started stage.

    :ivar index: 1-based stage number.
    :ivar total: Total stage count.
    :ivar name: Stage label.
    """

    index: int
    total: int
    name: str
    _status: Status | None = field(default=None, repr=False)
    done: bool = False

    @property
    def prefix(self) -> str:
        return f"[{self.index}/{self.total}]"


class Pipeline:
    """Renders ``[current/total] name`` progress for sequential stages."""

    def __init__(self, total: int, *, stream: TextIO | None = None, interactive: bool | None = None) -> None:
        """Create a pipeline renderer.

        :param total: Number of stages that will run.
        :param stream: Output stream (defaults to stderr).
        :param interactive: Force spinner mode on or off; detected from the stream when ``None``.
        """

        self._stream: TextIO = stream if stream is not None else sys.stderr
        self._total: int = total
        self._current: int = 0
        if interactive is None:
            isatty = getattr(self._stream, "isatty", None)
            interactive = bool(isatty()) if isatty is not None else False
        self._interactive: bool = interactive
        self._console: Console | None = None
        if interactive is True:
            self._console = Console(file=self._stream, force_terminal=True, highlight=False, soft_wrap=True)

    @property
    def total(self) -> int:
        return self._total

    @property
    def current(self) -> int:
        return self._current

    @property
    def interactive(self) -> bool:
        return self._interactive

    def _write(self, text: str) -> None:
        self._stream.write(text)
        self._stream.flush()

    def start_stage(self, name: str) -> StageHandle:
        """Start the next stage.

        :param name: Stage label.
        :returns: Handle to pass to :meth:`finish_stage`.
        """

        self._current += 1
        handle: StageHandle = StageHandle(index=self._current, total=self._total, name=name)

        if self._console is not None:
            status: Status = self._console.status(
                f"{handle.prefix} {escape(name)}",
                spinner=_SPINNER,
                refresh_per_second=_REFRESH_PER_SECOND,
            )
            status.start()
            handle._status = status
        else:
            self._write(f"{handle.prefix} {name}...")
        return handle

    def _close(self, handle: StageHandle) -> None:
        if handle._status is not None:
            handle._status.stop()
            handle._status = None
        handle.done = True

    def finish_stage(self, handle: StageHandle, result: str) -> None:
        """Mark a stage successful.

        :param handle: Handle from :meth:`start_stage`.
        :param result: Short result text.
        """

        if handle.done is True:
            return
        self._close(handle)
        if self._console is not None:
            self._console.print(f"{handle.prefix} [green]✓[/green] {escape(handle.name)}: {escape(result)}")
        else:
            self._write(f" {result}\n")

    def skip_stage(self, handle: StageHandle, reason: str) -> None:
        """Mark an optional stage as skipped.

        :param handle: Handle from :meth:`start_stage`.
        :param reason: Why the stage was skipped.
        """

        if handle.done is True:
            return
        self._close(handle)
        if self._console is not None:
            self._console.print(f"{handle.prefix} [yellow]-[/yellow] {escape(handle.name)}: skipped ({escape(reason)})")
        else:
            self._write(f" skipped ({reason})\n")

    def fail_stage(self, handle: StageHandle) -> None:
        """Mark a stage failed before a fatal error unwinds.

        :param handle: Handle from :meth:`start_stage`.
        """

        if handle.done is True:
            return
        self._close(handle)
        if self._console is not None:
            self._console.print(f"{handle.prefix} [red]✗[/red] {escape(handle.name)}")
        else:
            self._write(" failed\n")

    def finish(self, output_path: str) -> None:
        """Write the closing banner.

        :param output_path: Path of the produced executable.
        """

        if self._console is not None:
            self._console.print(f"\n  [bold green]✓[/bold green] Binary ready: {escape(output_path)}\n")
        else:
            self._write(f"\nDone: {output_path}\n")
