"""
Main sync engine for test taker notifications.

Orchestrates one pass:
- Access token acquisition
- Pagination back to the watermark
- Watermark advance
- Eligibility filtering
- Ledger lookup, notification and outcome recording
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from rich.console import Console
from rich.table import Table

from testtaker_notify.api_client import TestTakerAPI
from testtaker_notify.config import Config
from testtaker_notify.eligibility import is_eligible
from testtaker_notify.exceptions import FatalSyncError, StoreError, SyncError
from testtaker_notify.interfaces import Ledger, Notifier, RecordSource, WatermarkStore
from testtaker_notify.mailer import create_notifier
from testtaker_notify.models import TestTaker, TestTakerPage
from testtaker_notify.repository import JsonRepository

console = Console()


@dataclass
class SyncResult:
    """Result of a sync pass."""

    candidates: int = 0
    pages_fetched: int = 0
    sent: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    would_send: list[int] = field(default_factory=list)
    skipped_ineligible: int = 0
    skipped_duplicate: int = 0
    page_errors: list[str] = field(default_factory=list)
    ledger_errors: list[str] = field(default_factory=list)
    watermark_before: Optional[int] = None
    watermark_after: Optional[int] = None

    @property
    def processed_count(self) -> int:
        """Number of test takers a notification was attempted for."""
        return len(self.sent) + len(self.failed)

    @property
    def success(self) -> bool:
        """Check if the pass completed without recoverable errors."""
        return not self.page_errors and not self.ledger_errors


class SyncEngine:
    """
    Orchestrator for one synchronization pass.

    The watermark is the finish time of the newest test taker already
    seen. A pass:
    1. Authenticates and reads the previous watermark
    2. Fetches the first page and immediately stores its newest finish
       time as the new watermark
    3. Walks pages until a test taker at or below the previous watermark
       shows up, or the reported total is exhausted
    4. Notifies each eligible test taker with no ledger entry and
       records the outcome

    Storing the watermark before processing means a crash mid-pass can
    leave some new test takers un-notified; the next pass will not look
    at them again. A pass always runs to completion; shutdown is
    honoured between passes by the scheduler.
    """

    def __init__(
        self,
        config: Config,
        source: RecordSource,
        watermark_store: WatermarkStore,
        ledger: Ledger,
        notifier: Notifier,
    ):
        """
        Initialize sync engine.

        Args:
            config: Configuration instance.
            source: Paginated test takers listing.
            watermark_store: Where the watermark lives.
            ledger: Notification outcomes per test taker.
            notifier: Delivery channel.
        """
        self.config = config
        self.source = source
        self.watermark_store = watermark_store
        self.ledger = ledger
        self.notifier = notifier

    @classmethod
    def from_config(cls, config: Config) -> "SyncEngine":
        """Wire up the HTTP source, JSON store and configured mailer."""
        repository = JsonRepository(config.db_path)
        return cls(
            config,
            source=TestTakerAPI(config),
            watermark_store=repository,
            ledger=repository,
            notifier=create_notifier(config),
        )

    def run_pass(self) -> SyncResult:
        """
        Perform one synchronization pass.

        Returns:
            SyncResult with details of the pass.

        Raises:
            FatalSyncError: If authentication, the first page or the
                            watermark store fails.
        """
        result = SyncResult()

        started = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
        console.print(f"\n[bold blue]🔄 Starting sync pass[/bold blue] [dim]{started}[/dim]")

        test_takers = self.fetch_new_test_takers(result)
        console.print(f"[cyan]New test takers:[/cyan] {len(test_takers)}")

        self.notify_eligible(test_takers, result)

        self._print_summary(result)

        return result

    def fetch_new_test_takers(self, result: SyncResult) -> list[TestTaker]:
        """
        Collect test takers that finished after the previous watermark.

        Args:
            result: SyncResult to update.

        Returns:
            Candidates in page order (newest first).
        """
        try:
            access_token = self.source.authenticate()
        except SyncError as e:
            raise FatalSyncError(f"could not authenticate: {e}") from e

        try:
            previous = self.watermark_store.get_watermark()
        except StoreError as e:
            raise FatalSyncError(f"could not read the watermark: {e}") from e

        result.watermark_before = previous
        result.watermark_after = previous

        limit = self.config.page_size
        try:
            page = self.source.list_page(access_token, limit, 0)
        except SyncError as e:
            raise FatalSyncError(f"could not fetch the first page of test takers: {e}") from e
        result.pages_fetched = 1

        self._advance_watermark(page, previous, result)

        total_pages = math.ceil(page.total / limit)
        test_takers: list[TestTaker] = []
        index = 0

        while True:
            for test_taker in page.test_takers:
                if previous is not None and test_taker.finished_at <= previous:
                    return test_takers
                test_takers.append(test_taker)

            index += 1
            if index >= total_pages:
                break

            offset = index * limit
            try:
                page = self.source.list_page(access_token, limit, offset)
                result.pages_fetched += 1
            except SyncError as e:
                console.print(f"[yellow]Warning: Could not fetch test takers at offset {offset}: {e}[/yellow]")
                result.page_errors.append(f"offset {offset}: {e}")
                page = TestTakerPage()

        return test_takers

    def _advance_watermark(
        self,
        first_page: TestTakerPage,
        previous: Optional[int],
        result: SyncResult,
    ) -> None:
        """Store the newest finish time seen, never moving backward."""
        if not first_page.test_takers:
            return

        newest = first_page.test_takers[0].finished_at
        if previous is not None and newest <= previous:
            return

        if self.config.dry_run:
            console.print(f"[dim]Dry run: would advance watermark to {newest}[/dim]")
            return

        try:
            self.watermark_store.set_watermark(newest)
        except StoreError as e:
            raise FatalSyncError(f"could not save the watermark: {e}") from e

        result.watermark_after = newest

    def notify_eligible(self, test_takers: list[TestTaker], result: SyncResult) -> None:
        """
        Send one notification per eligible test taker without a ledger entry.

        Args:
            test_takers: Candidates from fetch_new_test_takers.
            result: SyncResult to update.
        """
        result.candidates = len(test_takers)
        attempted: set[int] = set()

        for test_taker in test_takers:
            if not is_eligible(test_taker, self.config.eligibility_threshold):
                result.skipped_ineligible += 1
                self._debug(f"Skipping {test_taker.id} (not eligible)")
                continue

            if test_taker.id in attempted:
                result.skipped_duplicate += 1
                continue

            try:
                if self.ledger.has_outcome(test_taker.id):
                    result.skipped_duplicate += 1
                    self._debug(f"Skipping {test_taker.id} (already notified)")
                    continue
            except StoreError as e:
                console.print(f"[yellow]Warning: Could not check ledger for {test_taker.id}: {e}[/yellow]")
                result.ledger_errors.append(f"{test_taker.id}: {e}")
                continue

            if self.config.dry_run:
                console.print(f"[dim]Dry run: would notify {test_taker.id} <{test_taker.email}>[/dim]")
                result.would_send.append(test_taker.id)
                continue

            attempted.add(test_taker.id)
            self._notify(test_taker, result)

    def _notify(self, test_taker: TestTaker, result: SyncResult) -> None:
        try:
            self.notifier.send(test_taker.recipient, self.config.mail_from, self.config.mail)
        except Exception as e:
            console.print(f"[red]Failed to notify {test_taker.id} <{test_taker.email}>: {e}[/red]")
            result.failed.append(test_taker.id)
            record = self.ledger.record_failed
        else:
            result.sent.append(test_taker.id)
            record = self.ledger.record_sent

        try:
            record(test_taker.id, test_taker.email)
        except StoreError as e:
            console.print(f"[yellow]Warning: Could not record outcome for {test_taker.id}: {e}[/yellow]")
            result.ledger_errors.append(f"{test_taker.id}: {e}")

    def _debug(self, message: str) -> None:
        if self.config.debug:
            console.print(f"[dim]{message}[/dim]")

    def _print_summary(self, result: SyncResult) -> None:
        """Print pass summary."""
        table = Table(show_header=False, box=None)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="white")

        table.add_row("Pages fetched", str(result.pages_fetched))
        table.add_row("Candidates", str(result.candidates))
        table.add_row("Notified", str(len(result.sent)))
        table.add_row("Failed", str(len(result.failed)))
        if self.config.dry_run:
            table.add_row("Would notify", str(len(result.would_send)))
        table.add_row("Skipped (not eligible)", str(result.skipped_ineligible))
        table.add_row("Skipped (already notified)", str(result.skipped_duplicate))
        table.add_row("Page errors", str(len(result.page_errors)))
        table.add_row("Ledger errors", str(len(result.ledger_errors)))
        table.add_row("Watermark", str(result.watermark_after) if result.watermark_after is not None else "unset")

        console.print(table)
