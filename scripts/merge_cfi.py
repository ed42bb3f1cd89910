import os
import sys
import logging

# Add project root to path
sys.path.append(os.getcwd())

from cfi_ranges.utils.cfi_utils import parse_cfi_range
from cfi_ranges.utils.di_container import create_container
from cfi_ranges.utils.logging_utils import setup_console_logging
from cfi_ranges.services.range_merge_service import RangeMergeService

logger = logging.getLogger("MergeCfi")


def merge_from_args(ranges):
    container = create_container()
    merge_service = container.get(RangeMergeService)
    return merge_service.merge(ranges)


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python scripts/merge_cfi.py <range_cfi> [<range_cfi> ...]")
        sys.exit(1)

    setup_console_logging()

    inputs = sys.argv[1:]
    for cfi in inputs:
        if parse_cfi_range(cfi) is None:
            logger.warning(f"⚠️ Ignoring malformed range: {cfi}")

    merged = merge_from_args(inputs)

    print(f"Input ranges:  {len(inputs)}")
    print(f"Merged ranges: {len(merged)}")
    print("-" * 40)
    for cfi in merged:
        parsed = parse_cfi_range(cfi)
        print(cfi)
        print(f"    {parsed.full_start} -> {parsed.full_end}")
