"""
Position comparators for point CFIs.

A comparator is any callable (a, b) -> -1 | 0 | 1. The authoritative one is
built on the epubcfi parser when that library is installed. Without it the
fallback comparator orders positions token by token, treating numeric steps
and offsets as numbers so that ":2" sorts before ":10".
"""
import logging
import re
import threading
from typing import Callable, List, Optional

from cfi_ranges.utils.cfi_utils import strip_cfi_wrapper

logger = logging.getLogger(__name__)

CfiComparator = Callable[[str, str], int]

_TOKEN_SPLIT = re.compile(r'([/:!])')
_INTEGER_TOKEN = re.compile(r'[0-9]+')

_fallback_warning_logged = False
_fallback_warning_lock = threading.Lock()


def _load_epubcfi():
    try:
        import epubcfi
    except ImportError:
        return None
    return epubcfi


def tokenize_cfi(cfi: str) -> List[str]:
    """Split on '/', ':' and '!' keeping each delimiter as its own token."""
    return [token for token in _TOKEN_SPLIT.split(strip_cfi_wrapper(cfi)) if token]


def fallback_compare(a: str, b: str) -> int:
    tokens_a = tokenize_cfi(a)
    tokens_b = tokenize_cfi(b)

    for token_a, token_b in zip(tokens_a, tokens_b):
        if token_a == token_b:
            continue
        if _INTEGER_TOKEN.fullmatch(token_a) and _INTEGER_TOKEN.fullmatch(token_b):
            num_a, num_b = int(token_a), int(token_b)
            if num_a == num_b:
                continue
            return -1 if num_a < num_b else 1
        return -1 if token_a < token_b else 1

    if len(tokens_a) == len(tokens_b):
        return 0
    return -1 if len(tokens_a) < len(tokens_b) else 1


class EpubCfiComparator:
    """Orders point CFIs using the structure reported by the epubcfi parser."""

    def __init__(self, cfi_module=None):
        self.epubcfi = cfi_module or _load_epubcfi()
        if self.epubcfi is None:
            raise ImportError("epubcfi is not installed (pip install 'cfi-range-engine[epub]') - set CFI_COMPARATOR=fallback to run without it")

    def sort_key(self, cfi: str) -> tuple:
        parsed = self.epubcfi.parse(cfi)
        key = []
        for step in parsed.steps:
            index = getattr(step, 'index', None)
            if index is None:
                # Redirect (!) into the referenced document
                key.append((1, -1))
            else:
                key.append((1, int(index)))

        offset = getattr(parsed, 'offset', None)
        key.append((0, offset.value if offset else 0))
        return tuple(key)

    def compare(self, a: str, b: str) -> int:
        key_a = self.sort_key(a)
        key_b = self.sort_key(b)
        return (key_a > key_b) - (key_a < key_b)

    def __call__(self, a: str, b: str) -> int:
        return self.compare(a, b)


def create_comparator(name: str = "auto") -> Optional[CfiComparator]:
    """
    Build the comparator selected by CFI_COMPARATOR.
    Returns None when positions should be ordered by the fallback comparator.
    """
    name = (name or "auto").strip().lower()

    if name == "fallback":
        return None
    if name == "epubcfi":
        return EpubCfiComparator()
    if name == "auto":
        module = _load_epubcfi()
        if module is None:
            logger.info("epubcfi not installed, CFI ordering will use the fallback comparator")
            return None
        return EpubCfiComparator(module)

    raise ValueError(f"Unknown CFI comparator '{name}' (expected auto, epubcfi or fallback)")


def resolve_comparator(comparator: Optional[CfiComparator] = None) -> CfiComparator:
    """Return the given comparator, or the fallback one (warning about it once)."""
    global _fallback_warning_logged
    if comparator is not None:
        return comparator

    with _fallback_warning_lock:
        if not _fallback_warning_logged:
            _fallback_warning_logged = True
            logger.warning("⚠️ No authoritative CFI comparator configured, ordering positions with the fallback comparator")
    return fallback_compare


def reset_fallback_warning():
    global _fallback_warning_logged
    with _fallback_warning_lock:
        _fallback_warning_logged = False
