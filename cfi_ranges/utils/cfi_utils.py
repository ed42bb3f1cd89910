"""
CFI utilities for cfi-range-engine

Parsing and building of EPUB Canonical Fragment Identifiers (CFIs):

- point form:  epubcfi(/6/14[chap01]!/4/2/1:0)
- range form:  epubcfi(/6/14[chap01]!/4/2/1,:0,:10)   (parent, start, end)

Everything here works on plain strings. Malformed input never raises, it
returns None (or the input unchanged for the branch helpers).
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

logger = logging.getLogger(__name__)

CFI_PREFIX = "epubcfi("
CFI_SUFFIX = ")"
CFI_DELIMITERS = ('/', '!', ':')


@dataclass
class CfiRangeData:
    parent: str
    start: str
    end: str
    raw_start: str
    raw_end: str
    full_start: str
    full_end: str

    @property
    def cfi(self) -> str:
        return wrap_cfi(f"{self.parent},{self.start},{self.end}")


@dataclass
class BlockRoot:
    # cfi is wrapped, base is the bare path used for prefix checks
    cfi: str
    base: str


def is_wrapped_cfi(value) -> bool:
    return isinstance(value, str) and value.startswith(CFI_PREFIX) and value.endswith(CFI_SUFFIX)


def strip_cfi_wrapper(cfi: str) -> str:
    """epubcfi(/6/4!/2:0) -> /6/4!/2:0. Unwrapped input is returned as-is."""
    if is_wrapped_cfi(cfi):
        return cfi[len(CFI_PREFIX):-len(CFI_SUFFIX)]
    return cfi


def wrap_cfi(path: str) -> str:
    return f"{CFI_PREFIX}{path}{CFI_SUFFIX}"


def parse_cfi_range(cfi_range: str) -> Optional[CfiRangeData]:
    """
    Split a range CFI into parent/start/end and rebuild both end points.

    The content is split on every comma. A [label] assertion holding a literal
    comma is therefore not supported: it yields the wrong segment count and
    the range is rejected.
    """
    if not cfi_range or not is_wrapped_cfi(cfi_range):
        return None

    parts = strip_cfi_wrapper(cfi_range).split(',')
    if len(parts) != 3:
        return None

    parent, start, end = parts
    return CfiRangeData(
        parent=parent,
        start=start,
        end=end,
        raw_start=parent + start,
        raw_end=parent + end,
        full_start=wrap_cfi(parent + start),
        full_end=wrap_cfi(parent + end),
    )


def is_cfi_range(cfi: str) -> bool:
    return parse_cfi_range(cfi) is not None


def generate_cfi_range(start: str, end: str) -> str:
    """
    Build the compact range CFI spanning two point CFIs.

    The shared prefix is cut back to the closest '/', '!' or ':' so a step
    such as "10" is never split into "1" + "0".
    """
    start = strip_cfi_wrapper(start)
    end = strip_cfi_wrapper(end)

    if start == end:
        return wrap_cfi(f"{start},,")

    i = 0
    while i < len(start) and i < len(end) and start[i] == end[i]:
        i += 1

    while i > 0:
        char = start[i] if i < len(start) else ''
        if char in CFI_DELIMITERS:
            break
        i -= 1

    common = start[:i]
    return wrap_cfi(f"{common},{start[i:]},{end[i:]}")


def _is_ancestor_or_self(base: str, path: str) -> bool:
    # "/1" must not claim "/10"
    if not base or not path.startswith(base):
        return False
    return len(path) == len(base) or path[len(base)] in CFI_DELIMITERS


def is_same_branch(a: str, b: str) -> bool:
    """True when one CFI path is an ancestor of (or equal to) the other."""
    if not isinstance(a, str) or not isinstance(b, str):
        return False
    a = strip_cfi_wrapper(a)
    b = strip_cfi_wrapper(b)
    return _is_ancestor_or_self(a, b) or _is_ancestor_or_self(b, a)


def preprocess_block_roots(cfis: Iterable[Union[str, BlockRoot]]) -> List[BlockRoot]:
    """
    Normalize table/figure root CFIs once so repeated parent lookups stay cheap.
    Range roots are reduced to their parent. Deepest roots come first.
    """
    roots = []
    for cfi in cfis or ():
        if isinstance(cfi, BlockRoot):
            roots.append(cfi)
            continue
        if not isinstance(cfi, str):
            continue
        parsed = parse_cfi_range(cfi)
        base = parsed.parent if parsed else strip_cfi_wrapper(cfi)
        if not base:
            continue
        roots.append(BlockRoot(cfi=wrap_cfi(base), base=base))

    roots.sort(key=lambda root: len(root.base), reverse=True)
    return roots


def get_parent_cfi(cfi: str, roots: Iterable[Union[str, BlockRoot]] = ()) -> str:
    """
    Return the CFI of the block element holding a position.

    A known root (a table, say) that contains the position wins, so every
    sentence inside it maps to the same block. Otherwise the character offset
    and the final (text node) step are dropped, but never past the last '!'.
    """
    if not isinstance(cfi, str):
        return ""

    parsed = parse_cfi_range(cfi)
    point = parsed.full_start if parsed else cfi
    if not is_wrapped_cfi(point):
        return cfi

    path = strip_cfi_wrapper(point)

    for root in preprocess_block_roots(roots):
        if _is_ancestor_or_self(root.base, path):
            return root.cfi

    colon = path.rfind(':')
    if colon > path.rfind('/'):
        path = path[:colon]

    slash = path.rfind('/')
    if slash > 0 and slash > path.rfind('!'):
        path = path[:slash]

    return wrap_cfi(path)


def _finalize_group(group: dict) -> dict:
    first = group['segments'][0].get('cfi') or ''
    last = group['segments'][-1].get('cfi') or ''

    first_parsed = parse_cfi_range(first)
    last_parsed = parse_cfi_range(last)
    root_cfi = generate_cfi_range(
        first_parsed.full_start if first_parsed else first,
        last_parsed.full_end if last_parsed else last,
    )
    return {
        'root_cfi': root_cfi,
        'segments': group['segments'],
        'full_text': group['full_text'],
    }


def group_segments_by_root(segments: List[dict], roots: Iterable[Union[str, BlockRoot]] = ()) -> List[dict]:
    """
    Group consecutive text segments ({'text', 'cfi'}) by their block element.

    Segments stay in the same group while their parent CFIs lie on one branch
    of the document tree. Each group gets a range CFI spanning from its first
    to its last segment, so a whole table or aside can be classified at once.
    """
    block_roots = preprocess_block_roots(roots)
    groups = []
    current = None

    for segment in segments or ():
        parent_cfi = get_parent_cfi(segment.get('cfi') or '', block_roots)

        if current is None or not is_same_branch(current['parent_cfi'], parent_cfi):
            if current is not None:
                groups.append(_finalize_group(current))
            current = {'parent_cfi': parent_cfi, 'segments': [], 'full_text': ''}

        current['segments'].append(segment)
        current['full_text'] += f"{segment.get('text', '')}. "

    if current is not None:
        groups.append(_finalize_group(current))

    logger.debug(f"Grouped {len(segments or ())} segments into {len(groups)} blocks")
    return groups
