"""
Range merging for CFI reading history and highlights.

merge_cfi_ranges() keeps a list of range CFIs sorted, non-overlapping and
minimal: ranges that overlap or touch are folded into one. The sweep first
tries try_fast_merge_cfi(), a plain string splice for two ranges sharing a
parent, and only re-synthesizes the range when the splice does not apply.

Error Handling Convention:
- Unparseable ranges are dropped, never raised
- A comparator failure while sorting returns the input unchanged
- A comparator failure while sweeping also returns the input unchanged
"""
import logging
from dataclasses import dataclass
from functools import cmp_to_key
from typing import List, Optional, Tuple, Union

from cfi_ranges.utils.cfi_compare import CfiComparator, resolve_comparator
from cfi_ranges.utils.cfi_utils import (
    CfiRangeData,
    generate_cfi_range,
    is_wrapped_cfi,
    parse_cfi_range,
    strip_cfi_wrapper,
    wrap_cfi,
)
from cfi_ranges.utils.logging_utils import sanitize_log_data, time_execution

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CfiPoint:
    parent: str
    # Last step plus its offset, e.g. "/1:15"
    tail: str


@dataclass(frozen=True)
class CfiRange:
    parent: str
    start: str
    end: str


def classify_cfi(cfi: str) -> Optional[Union[CfiPoint, CfiRange]]:
    """Tell a range CFI from a point CFI. Anything else is None."""
    parsed = parse_cfi_range(cfi)
    if parsed:
        return CfiRange(parent=parsed.parent, start=parsed.start, end=parsed.end)

    if not is_wrapped_cfi(cfi):
        return None

    path = strip_cfi_wrapper(cfi)
    if ',' in path:
        return None

    slash = path.rfind('/')
    if slash < 0:
        return None

    tail = path[slash:]
    if ':' not in tail:
        return None
    return CfiPoint(parent=path[:slash], tail=tail)


def try_fast_merge_cfi(left: str, right: str) -> Optional[str]:
    """
    Splice two CFIs that share the exact same parent into one range.

    left provides the start and right provides the end; the caller guarantees
    that left comes first. Returns None for point + point, for different
    parents and for anything unparseable, so the caller takes the slow path.
    """
    left_cfi = classify_cfi(left)
    right_cfi = classify_cfi(right)
    if left_cfi is None or right_cfi is None:
        return None
    if left_cfi.parent != right_cfi.parent:
        return None

    parent = left_cfi.parent
    if isinstance(left_cfi, CfiRange) and isinstance(right_cfi, CfiRange):
        return wrap_cfi(f"{parent},{left_cfi.start},{right_cfi.end}")
    if isinstance(left_cfi, CfiRange) and isinstance(right_cfi, CfiPoint):
        return wrap_cfi(f"{parent},{left_cfi.start},{right_cfi.tail}")
    if isinstance(left_cfi, CfiPoint) and isinstance(right_cfi, CfiRange):
        return wrap_cfi(f"{parent},{left_cfi.tail},{right_cfi.end}")
    return None


def _end_points(cfi: str) -> Optional[Tuple[str, str]]:
    parsed = parse_cfi_range(cfi)
    if parsed:
        return parsed.raw_start, parsed.raw_end
    if is_wrapped_cfi(cfi) and ',' not in cfi:
        path = strip_cfi_wrapper(cfi)
        if path:
            return path, path
    return None


def merge_cfi_slow(left: str, right: str) -> Optional[str]:
    """
    General counterpart of try_fast_merge_cfi(): parse both sides (a point is
    its own start and end) and synthesize the range from left's start to
    right's end.
    """
    left_points = _end_points(left)
    right_points = _end_points(right)
    if left_points is None or right_points is None:
        return None
    return generate_cfi_range(left_points[0], right_points[1])


def _extend(current: CfiRangeData, following: CfiRangeData, use_fast_path: bool) -> CfiRangeData:
    if use_fast_path:
        spliced = try_fast_merge_cfi(current.cfi, following.cfi)
        parsed = parse_cfi_range(spliced) if spliced else None
        if parsed:
            return parsed
    return parse_cfi_range(generate_cfi_range(current.raw_start, following.raw_end))


@time_execution
def merge_cfi_ranges(ranges: List[str], new_range: Optional[str] = None,
                     comparator: Optional[CfiComparator] = None,
                     use_fast_path: bool = True) -> List[str]:
    """
    Merge new_range into ranges and return the minimal sorted range set.

    Ranges that overlap or touch (next start <= current end) become one.
    Entries that never had to be extended are returned exactly as given, so
    merging a range with itself gives back the same string.
    """
    all_ranges = list(ranges or [])
    if new_range:
        all_ranges.append(new_range)

    if not all_ranges:
        return []

    compare = resolve_comparator(comparator)

    parsed_ranges = []
    for cfi in all_ranges:
        parsed = parse_cfi_range(cfi)
        if parsed:
            parsed_ranges.append((cfi, parsed))
        else:
            logger.debug(f"Dropping unparseable CFI range: {sanitize_log_data(cfi)}")

    if not parsed_ranges:
        return []

    try:
        parsed_ranges.sort(key=cmp_to_key(lambda a, b: compare(a[1].full_start, b[1].full_start)))
    except Exception as e:
        logger.error(f"❌ Error comparing CFIs, leaving ranges unmerged: {e}")
        return all_ranges

    merged = []
    # source is the caller's string until the interval gets extended
    current_source, current = parsed_ranges[0]

    for next_source, following in parsed_ranges[1:]:
        try:
            if compare(following.full_start, current.full_end) <= 0:
                if compare(following.full_end, current.full_end) > 0:
                    current = _extend(current, following, use_fast_path)
                    current_source = None
                continue
        except Exception as e:
            logger.error(f"❌ Error merging CFIs, leaving ranges unmerged: {e}")
            return all_ranges

        merged.append((current_source, current))
        current_source, current = next_source, following

    merged.append((current_source, current))

    return [
        source if source is not None else generate_cfi_range(data.raw_start, data.raw_end)
        for source, data in merged
    ]


class RangeMergeService:
    """Merges CFI range sets with an injected comparator."""

    def __init__(self, comparator: Optional[CfiComparator] = None, fast_path_enabled: bool = True):
        self.comparator = comparator
        self.fast_path_enabled = fast_path_enabled

        comparator_name = type(comparator).__name__ if comparator is not None else "fallback"
        logger.info(f"✅ RangeMergeService initialized (comparator={comparator_name}, fast_path={fast_path_enabled})")

    def merge(self, ranges: List[str], new_range: Optional[str] = None) -> List[str]:
        return merge_cfi_ranges(ranges, new_range,
                                comparator=self.comparator,
                                use_fast_path=self.fast_path_enabled)

    def union(self, *range_sets: List[str]) -> List[str]:
        """Normalize each range set on its own, then merge them together."""
        combined = []
        for range_set in range_sets:
            combined.extend(self.merge(range_set or []))
        return self.merge(combined)

    def compare(self, a: str, b: str) -> int:
        return resolve_comparator(self.comparator)(a, b)

    def contains(self, ranges: List[str], cfi: str) -> bool:
        """True when a point (or every point of a range) lies inside one of ranges."""
        target = parse_cfi_range(cfi)
        if target:
            start, end = target.full_start, target.full_end
        elif is_wrapped_cfi(cfi):
            start = end = cfi
        else:
            return False

        compare = resolve_comparator(self.comparator)
        for cfi_range in ranges or []:
            parsed = parse_cfi_range(cfi_range)
            if not parsed:
                continue
            try:
                if compare(parsed.full_start, start) <= 0 and compare(end, parsed.full_end) <= 0:
                    return True
            except Exception as e:
                logger.error(f"❌ Error comparing '{sanitize_log_data(cfi)}' against '{sanitize_log_data(cfi_range)}': {e}")
        return False
