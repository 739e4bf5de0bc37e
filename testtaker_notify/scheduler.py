"""
Fixed-interval loop around the sync engine.

Passes never overlap. After each pass the loop sleeps for the interval
minus the time the pass took, or not at all if the pass overran.
"""

import threading
import time
from typing import Callable, Optional

from rich.console import Console

from testtaker_notify.sync_engine import SyncEngine, SyncResult

console = Console()


def sleep_duration(interval: float, elapsed: float) -> float:
    """Time left in the tick, floored at zero."""
    return max(0.0, interval - elapsed)


class Scheduler:
    """
    Runs sync passes forever (or up to max_passes).

    FatalSyncError raised by a pass is not caught here; it ends the loop
    and is left to the caller.
    """

    def __init__(
        self,
        engine: SyncEngine,
        interval: float,
        stop_event: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.engine = engine
        self.interval = interval
        self.stop_event = stop_event or threading.Event()
        self.clock = clock
        self.passes = 0

    def stop(self) -> None:
        """Ask the loop to finish once the current pass completes."""
        self.stop_event.set()

    def run(self, max_passes: Optional[int] = None) -> Optional[SyncResult]:
        """
        Run passes until stopped.

        Args:
            max_passes: Stop after this many passes (None runs forever).

        Returns:
            The result of the last completed pass, if any.
        """
        last_result = None

        while not self.stop_event.is_set():
            started = self.clock()
            last_result = self.engine.run_pass()
            self.passes += 1

            if max_passes is not None and self.passes >= max_passes:
                break

            delay = sleep_duration(self.interval, self.clock() - started)
            console.print(f"[dim]Sleeping for {delay:.1f} seconds[/dim]")
            if self.stop_event.wait(delay):
                break

        if self.stop_event.is_set():
            console.print("[yellow]Scheduler stopped.[/yellow]")

        return last_result
