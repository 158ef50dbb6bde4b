"""
Split recap HTML into pages that each fit the Telegraph size limit.

Sizes are measured on the serialized node tree (see ``nodes``), which is
what the API actually receives. A node array's size is additive: two
brackets, the nodes themselves, and one comma between each pair, so pages
can be budgeted block by block without re-serializing.
"""

import html as html_lib
import json

from bs4 import BeautifulSoup

from recap.errors import PublishingOverBudget
from recap.logging_config import get_logger

from .nodes import html_to_nodes, node_size, serialized_size, top_level_blocks

logger = get_logger("paginator")

PAGE_SIZE_LIMIT = 60 * 1024
SAFETY_BUFFER = 2 * 1024

FIRST_PAGE_NOTICE = (
    "<p><strong>Note:</strong> this recap is long, so it has been split into several pages.</p><hr>"
)
CONTINUES_FOOTER = "<hr><p><em>Continues on the next page.</em></p>"
END_FOOTER = "<hr><p><em>End of series.</em></p>"


def continued_header(title: str, part: int) -> str:
    return f"<p><strong>{html_lib.escape(title)} (continued, part {part})</strong></p><hr>"


class _Cost:
    """Byte cost of a run of top-level nodes."""

    __slots__ = ("size", "count")

    def __init__(self, size: int = 0, count: int = 0):
        self.size = size
        self.count = count

    @classmethod
    def of_html(cls, fragment: str) -> "_Cost":
        nodes = html_to_nodes(fragment)
        return cls(sum(node_size(node) for node in nodes), len(nodes))

    @classmethod
    def of_paragraph(cls, text: str) -> "_Cost":
        node = {"tag": "p", "children": [text]}
        size = len(json.dumps(node, ensure_ascii=False, separators=(",", ":")).encode("utf-8"))
        return cls(size, 1)

    def __add__(self, other: "_Cost") -> "_Cost":
        return _Cost(self.size + other.size, self.count + other.count)

    @property
    def total(self) -> int:
        # "[" + nodes joined by "," + "]"
        return 2 + self.size + max(self.count - 1, 0)


class _Page:
    def __init__(self, header: str, footer_cost: _Cost, limit: int):
        self.header = header
        self.limit = limit
        self.blocks: list[str] = []
        self.cost = _Cost.of_html(header)
        self.footer_cost = footer_cost

    def fits(self, extra: _Cost) -> bool:
        return (self.cost + extra + self.footer_cost).total <= self.limit

    def add(self, block: str, cost: _Cost) -> None:
        self.blocks.append(block)
        self.cost = self.cost + cost

    def render(self, footer: str) -> str:
        return self.header + "".join(self.blocks) + footer


class Paginator:
    """Splits documents into pages under a byte budget."""

    def __init__(self, byte_budget: int = PAGE_SIZE_LIMIT, safety_buffer: int = SAFETY_BUFFER):
        if safety_buffer >= byte_budget:
            raise ValueError("safety_buffer must be smaller than byte_budget")
        self.byte_budget = byte_budget
        self.safety_buffer = safety_buffer

    @property
    def limit(self) -> int:
        """Effective per-page budget in bytes."""
        return self.byte_budget - self.safety_buffer

    def fits(self, html: str) -> bool:
        return serialized_size(html) <= self.limit

    def paginate(self, html: str, title: str, reserve: int = 0) -> list[str]:
        """Split ``html`` into pages.

        When a split is needed, every page keeps ``reserve`` bytes free for
        content added after publishing (the series index).
        """
        if self.fits(html):
            return [html]

        limit = self.limit - reserve

        footer_cost = max(
            _Cost.of_html(CONTINUES_FOOTER),
            _Cost.of_html(END_FOOTER),
            key=lambda cost: cost.total,
        )
        pages: list[str] = []
        current = self._new_page(1, title, footer_cost, limit)

        def close() -> "_Page":
            pages.append(current.render(CONTINUES_FOOTER))
            return self._new_page(len(pages) + 1, title, footer_cost, limit)

        blocks = top_level_blocks(html)
        for block in blocks:
            cost = _Cost.of_html(block)
            if current.fits(cost):
                current.add(block, cost)
                continue

            if current.blocks:
                current = close()
                if current.fits(cost):
                    current.add(block, cost)
                    continue

            text = " ".join(BeautifulSoup(block, "html.parser").get_text(" ").split())
            if not text:
                raise PublishingOverBudget(
                    f"block of {cost.total} bytes exceeds page budget {limit} and has no text to split"
                )
            logger.warning(f"Block of {cost.total} bytes exceeds page budget {limit}, splitting its text")
            while text:
                chunk = self._largest_chunk(text, current)
                if not chunk:
                    if not current.blocks:
                        raise PublishingOverBudget(
                            f"page budget {limit} cannot hold any content for '{title}'"
                        )
                    current = close()
                    continue
                current.add(f"<p>{html_lib.escape(chunk, quote=False)}</p>", _Cost.of_paragraph(chunk))
                text = text[len(chunk):].lstrip()
                if text:
                    current = close()

        pages.append(current.render(END_FOOTER))
        logger.info(f"Split '{title}' into {len(pages)} pages ({len(blocks)} blocks)")
        return pages

    def _new_page(self, part: int, title: str, footer_cost: _Cost, limit: int) -> _Page:
        header = FIRST_PAGE_NOTICE if part == 1 else continued_header(title, part)
        page = _Page(header, footer_cost, limit)
        if not page.fits(_Cost()):
            raise PublishingOverBudget(
                f"page budget {limit} is smaller than the page header and footer"
            )
        return page

    @staticmethod
    def _largest_chunk(text: str, page: _Page) -> str:
        """Longest prefix of ``text`` that fits on ``page`` as one paragraph."""
        low, high = 0, len(text)
        while low < high:
            mid = (low + high + 1) // 2
            if page.fits(_Cost.of_paragraph(text[:mid])):
                low = mid
            else:
                high = mid - 1
        if low == len(text) or low == 0:
            return text[:low]
        # Prefer breaking on whitespace when it doesn't waste most of the page.
        cut = text.rfind(" ", 0, low)
        if cut > low // 2:
            return text[:cut]
        return text[:low]


def paginate(
    html: str,
    title: str,
    byte_budget: int = PAGE_SIZE_LIMIT,
    safety_buffer: int = SAFETY_BUFFER,
) -> list[str]:
    """Split ``html`` into pages whose serialized size stays within the budget."""
    return Paginator(byte_budget, safety_buffer).paginate(html, title)
