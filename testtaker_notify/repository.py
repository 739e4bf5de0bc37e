"""
Persistent state for the sync system.

A single JSON document holds three key spaces:
- config: the watermark (finish time of the newest processed test taker)
- test_taker_email: test takers notified successfully
- failed_test_taker_emails: test takers whose notification failed

The file is rewritten atomically on every change.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

from testtaker_notify.exceptions import StoreError
from testtaker_notify.models import TestTakerEmail

STATE_VERSION = "1.0"

BUCKET_CONFIG = "config"
BUCKET_SENT = "test_taker_email"
BUCKET_FAILED = "failed_test_taker_emails"

KEY_LAST_FINISHED_AT = "last_finished_at"


class JsonRepository:
    """
    Watermark store and notification ledger backed by a JSON file.

    Ledger entries are write-once: recording an outcome for a test taker
    that already has one leaves the existing entry untouched.
    """

    def __init__(self, path: Path):
        """
        Open (or lazily create) the store.

        Args:
            path: Location of the JSON state file.

        Raises:
            StoreError: If an existing file cannot be read or parsed.
        """
        self.path = Path(path)
        self._data = self._load()

    def _empty(self) -> dict:
        return {
            "version": STATE_VERSION,
            BUCKET_CONFIG: {},
            BUCKET_SENT: {},
            BUCKET_FAILED: {},
        }

    def _load(self) -> dict:
        """Load state from file."""
        data = self._empty()
        if not self.path.exists():
            return data

        try:
            with open(self.path, encoding="utf-8") as f:
                stored = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"could not load state file {self.path}: {e}") from e

        if not isinstance(stored, dict):
            raise StoreError(f"state file {self.path} does not contain a JSON object")

        for bucket in (BUCKET_CONFIG, BUCKET_SENT, BUCKET_FAILED):
            data[bucket].update(stored.get(bucket) or {})
        data["version"] = stored.get("version", STATE_VERSION)

        return data

    def _save(self) -> None:
        """Write state to a temporary file, then move it into place."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(self._data, f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StoreError(f"could not write state file {self.path}: {e}") from e

    # Watermark

    def get_watermark(self) -> Optional[int]:
        """Return the stored watermark, or None if no pass has stored one."""
        raw = self._data[BUCKET_CONFIG].get(KEY_LAST_FINISHED_AT)
        if raw is None:
            return None
        try:
            return int(raw)
        except (TypeError, ValueError) as e:
            raise StoreError(f"could not convert {raw!r} into a timestamp") from e

    def set_watermark(self, timestamp: int) -> None:
        previous = self._data[BUCKET_CONFIG].get(KEY_LAST_FINISHED_AT)
        self._data[BUCKET_CONFIG][KEY_LAST_FINISHED_AT] = int(timestamp)
        try:
            self._save()
        except StoreError:
            if previous is None:
                del self._data[BUCKET_CONFIG][KEY_LAST_FINISHED_AT]
            else:
                self._data[BUCKET_CONFIG][KEY_LAST_FINISHED_AT] = previous
            raise

    # Ledger

    def has_outcome(self, test_taker_id: int) -> bool:
        key = str(test_taker_id)
        return key in self._data[BUCKET_SENT] or key in self._data[BUCKET_FAILED]

    def record_sent(self, test_taker_id: int, email: str) -> None:
        self._record(BUCKET_SENT, TestTakerEmail(test_taker_id=test_taker_id, email=email))

    def record_failed(self, test_taker_id: int, email: str) -> None:
        self._record(BUCKET_FAILED, TestTakerEmail(test_taker_id=test_taker_id, email=email))

    def _record(self, bucket: str, entry: TestTakerEmail) -> None:
        if self.has_outcome(entry.test_taker_id):
            return
        self._data[bucket][str(entry.test_taker_id)] = entry.to_dict()
        try:
            self._save()
        except StoreError:
            # Keep memory consistent with disk
            del self._data[bucket][str(entry.test_taker_id)]
            raise

    def sent_emails(self) -> list[TestTakerEmail]:
        """All successfully notified test takers, ordered by id."""
        return self._entries(BUCKET_SENT)

    def failed_emails(self) -> list[TestTakerEmail]:
        """All test takers whose notification failed, ordered by id."""
        return self._entries(BUCKET_FAILED)

    def _entries(self, bucket: str) -> list[TestTakerEmail]:
        entries = [TestTakerEmail.from_dict(v) for v in self._data[bucket].values()]
        return sorted(entries, key=lambda e: e.test_taker_id)

    # Operator maintenance

    def forget(self, test_taker_id: int) -> bool:
        """
        Remove the ledger entry for a test taker so it can be notified again.

        Returns:
            True if an entry was removed.
        """
        key = str(test_taker_id)
        removed = {}
        for bucket in (BUCKET_SENT, BUCKET_FAILED):
            if key in self._data[bucket]:
                removed[bucket] = self._data[bucket].pop(key)
        if not removed:
            return False
        try:
            self._save()
        except StoreError:
            for bucket, entry in removed.items():
                self._data[bucket][key] = entry
            raise
        return True

    def reset(self) -> None:
        """Clear the watermark and the whole ledger."""
        previous = self._data
        self._data = self._empty()
        try:
            self._save()
        except StoreError:
            self._data = previous
            raise
