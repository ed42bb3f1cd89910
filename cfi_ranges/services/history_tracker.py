"""
Reading history tracker - completed CFI ranges per book and per device.

Call record_range(book_id, cfi_range) whenever a stretch of text has been
read or listened to. Each device keeps its own minimal range set; asking for
a book without a device returns the union across all devices, which is what
history highlighting shows.

Nothing is persisted here, the owner decides where range sets are stored.
"""

import logging
import threading
from typing import Dict, List, Optional

from cfi_ranges.services.range_merge_service import RangeMergeService
from cfi_ranges.utils.logging_utils import sanitize_log_data

logger = logging.getLogger(__name__)

DEFAULT_DEVICE_ID = "default"


class ReadingHistoryTracker:

    def __init__(self, merge_service: RangeMergeService):
        self.merge_service = merge_service
        self._ranges: Dict[str, Dict[str, List[str]]] = {}
        self._lock = threading.Lock()

    def record_range(self, book_id: str, cfi_range: str, device_id: str = DEFAULT_DEVICE_ID) -> List[str]:
        """Merge cfi_range into the device's history for book_id and return the new set."""
        if not book_id:
            raise ValueError("book_id is required to record reading history")

        with self._lock:
            book_ranges = self._ranges.setdefault(book_id, {})
            merged = self.merge_service.merge(book_ranges.get(device_id, []), cfi_range)
            book_ranges[device_id] = merged

        logger.debug(f"Recorded {sanitize_log_data(cfi_range)} for '{book_id}' on '{device_id}' ({len(merged)} ranges)")
        return list(merged)

    def get_ranges(self, book_id: str, device_id: Optional[str] = None) -> List[str]:
        with self._lock:
            book_ranges = self._ranges.get(book_id, {})
            if device_id is not None:
                return list(book_ranges.get(device_id, []))
            range_sets = [list(ranges) for ranges in book_ranges.values()]

        if not range_sets:
            return []
        return self.merge_service.union(*range_sets)

    def merge_remote(self, book_id: str, remote_ranges: List[str], device_id: str = DEFAULT_DEVICE_ID) -> List[str]:
        """Union a remote range set (e.g. from sync) into the device's history."""
        if not book_id:
            raise ValueError("book_id is required to merge reading history")

        with self._lock:
            book_ranges = self._ranges.setdefault(book_id, {})
            merged = self.merge_service.union(book_ranges.get(device_id, []), remote_ranges or [])
            book_ranges[device_id] = merged

        logger.info(f"🔄 Merged {len(remote_ranges or [])} remote ranges into '{book_id}' ({len(merged)} ranges)")
        return list(merged)

    def is_position_read(self, book_id: str, cfi: str) -> bool:
        return self.merge_service.contains(self.get_ranges(book_id), cfi)

    def clear(self, book_id: Optional[str] = None):
        with self._lock:
            if book_id is None:
                self._ranges.clear()
            else:
                self._ranges.pop(book_id, None)
