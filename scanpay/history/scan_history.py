from datetime import datetime
from threading import Lock
from typing import Any, Dict, List

from scanpay.models.scan import ClassifiedScan, ScanCategory

MAX_ENTRIES = 5

CATEGORY_LABELS = {
    ScanCategory.DRIVER: "Transport Payment",
    ScanCategory.MERCHANT: "Merchant Payment",
    ScanCategory.UNKNOWN: "Unknown QR",
}


class ScanHistoryLedger:
    """Most-recent-first record of classified scans for user review.

    Bounded at five entries; the oldest is evicted first. Recording has no
    other side effects.
    """

    def __init__(self, limit: int = MAX_ENTRIES):
        self.limit = max(1, min(limit, MAX_ENTRIES))
        self.entries: List[Dict[str, Any]] = []
        self.lock = Lock()

    def record(self, scan: ClassifiedScan) -> None:
        entry = {
            'scan': scan,
            'timestamp': datetime.now().isoformat(),
        }
        with self.lock:
            self.entries = [entry] + self.entries[:self.limit - 1]

    def recent(self) -> List[ClassifiedScan]:
        """Scans newest first."""
        with self.lock:
            return [entry['scan'] for entry in self.entries]

    def get_recent_scans(self) -> List[Dict[str, Any]]:
        """Get recent scans formatted for display."""
        with self.lock:
            entries = list(self.entries)

        history_items = []
        for entry in entries:
            scan = entry['scan']
            history_items.append({
                'category': scan.category.value,
                'label': CATEGORY_LABELS[scan.category],
                'raw': scan.raw,
                'timestamp': entry['timestamp'],
            })
        return history_items

    def clear(self) -> None:
        with self.lock:
            self.entries = []

    def __len__(self) -> int:
        with self.lock:
            return len(self.entries)
