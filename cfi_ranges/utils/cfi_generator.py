"""
HTML <-> CFI mapping for a single spine document.

CfiTextMapper turns character offsets in the text of a chapter's <body> into
CFIs, and resolves range CFIs it produced back into the covered text. Markup
is passed in as a string; nothing here touches the filesystem.
"""
import logging
import os
import re
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from cfi_ranges.utils.cfi_utils import generate_cfi_range, parse_cfi_range, strip_cfi_wrapper, wrap_cfi

logger = logging.getLogger(__name__)

BODY_STEP = 4
_STEP = re.compile(r'^(\d+)(?:\[[^\]]*\])?$')


def _is_text(node) -> bool:
    # Comments, CDATA and doctypes are not addressable text
    return isinstance(node, NavigableString) and not isinstance(node, PreformattedString)


class CfiTextMapper:
    def __init__(self, html_parser: str = None):
        self.html_parser = html_parser or os.getenv("CFI_HTML_PARSER", "lxml")
        logger.info(f"✅ CfiTextMapper initialized (parser={self.html_parser})")

    def _body(self, html_content):
        soup = BeautifulSoup(html_content, self.html_parser)
        return soup.body

    @staticmethod
    def _text_nodes(body) -> List[NavigableString]:
        return [node for node in body.descendants if _is_text(node)]

    @staticmethod
    def _step_index(node) -> int:
        """CFI child index: elements are even (2, 4, ...), text between them is odd."""
        preceding = sum(1 for sibling in node.previous_siblings if isinstance(sibling, Tag))
        if isinstance(node, Tag):
            return (preceding + 1) * 2
        return preceding * 2 + 1

    def _node_path(self, node) -> Optional[str]:
        steps = []
        current = node
        while current is not None and not (isinstance(current, Tag) and current.name == 'body'):
            steps.append(str(self._step_index(current)))
            current = current.parent
        if current is None:
            return None
        steps.append(str(BODY_STEP))
        return "/" + "/".join(reversed(steps))

    @staticmethod
    def _locate(text_nodes, char_index, is_end=False) -> Optional[Tuple[NavigableString, int]]:
        """
        Find the text node holding char_index. A start sits at the beginning of
        the following node on a boundary, an (exclusive) end at the end of the
        preceding one.
        """
        position = 0
        for node in text_nodes:
            end = position + len(node)
            inside = position < char_index <= end if is_end else position <= char_index < end
            if inside:
                return node, char_index - position
            position = end

        if text_nodes:
            if is_end and char_index == 0:
                return text_nodes[0], 0
            if not is_end and char_index == position:
                return text_nodes[-1], len(text_nodes[-1])
        return None

    @staticmethod
    def _spine_path(base_cfi: str) -> str:
        # Only the package-document part, before the first indirection
        return strip_cfi_wrapper(base_cfi or "").split('!')[0]

    def generate_cfi(self, html_content: str, base_cfi: str, start_char: int, end_char: int = None) -> str:
        """
        Build the CFI for a character offset (or a [start_char, end_char) span)
        of the chapter text.

        Example: generate_cfi(html, "epubcfi(/6/14[chap01]!)", 0, 10)
                 -> "epubcfi(/6/14[chap01]!/4/2/1,:0,:10)"
        """
        try:
            body = self._body(html_content)
            if body is None:
                logger.error("❌ Cannot generate CFI: document has no <body>")
                return ""

            text_nodes = self._text_nodes(body)
            spine = self._spine_path(base_cfi)

            start = self._locate(text_nodes, start_char)
            if start is None:
                logger.error(f"❌ Start offset {start_char} is outside the chapter text")
                return ""
            start_cfi = wrap_cfi(f"{spine}!{self._node_path(start[0])}:{start[1]}")

            if end_char is None:
                return start_cfi

            end = self._locate(text_nodes, end_char, is_end=True)
            if end is None or end_char < start_char:
                logger.error(f"❌ End offset {end_char} is invalid for start {start_char}")
                return ""
            end_cfi = wrap_cfi(f"{spine}!{self._node_path(end[0])}:{end[1]}")

            return generate_cfi_range(start_cfi, end_cfi)

        except Exception as e:
            logger.error(f"❌ Error generating CFI: {e}")
            return ""

    @staticmethod
    def _child_at(parent, index: int):
        if not isinstance(parent, Tag):
            return None
        elements = 0
        for child in parent.children:
            if isinstance(child, Tag):
                elements += 1
                if elements * 2 == index:
                    return child
            elif _is_text(child) and elements * 2 + 1 == index:
                return child
        return None

    def _resolve_point(self, body, raw_cfi: str) -> Optional[Tuple[NavigableString, int]]:
        local = raw_cfi.split('!')[-1]
        path, _, offset = local.rpartition(':')
        if not path or not offset.isdigit():
            return None

        steps = [step for step in path.split('/') if step]
        first = _STEP.match(steps[0]) if steps else None
        if not first or int(first.group(1)) != BODY_STEP:
            return None

        current = body
        for step in steps[1:]:
            match = _STEP.match(step)
            if not match:
                return None
            current = self._child_at(current, int(match.group(1)))
            if current is None:
                return None

        if not _is_text(current) or int(offset) > len(current):
            return None
        return current, int(offset)

    def resolve_text(self, html_content: str, cfi_range: str) -> Optional[str]:
        """Return the chapter text covered by a range CFI, or None if it cannot be followed."""
        parsed = parse_cfi_range(cfi_range)
        if not parsed:
            return None

        try:
            body = self._body(html_content)
            if body is None:
                return None

            start = self._resolve_point(body, parsed.raw_start)
            end = self._resolve_point(body, parsed.raw_end)
            if start is None or end is None:
                logger.warning(f"⚠️ Could not follow CFI '{cfi_range}' in document")
                return None

            text_nodes = self._text_nodes(body)
            # NavigableString compares by value, so look nodes up by identity
            node_offsets = {}
            position = 0
            for node in text_nodes:
                node_offsets[id(node)] = position
                position += len(node)

            full_text = "".join(str(node) for node in text_nodes)
            start_index = node_offsets[id(start[0])] + start[1]
            end_index = node_offsets[id(end[0])] + end[1]
            return full_text[start_index:end_index]

        except Exception as e:
            logger.error(f"❌ Error resolving CFI '{cfi_range}': {e}")
            return None
