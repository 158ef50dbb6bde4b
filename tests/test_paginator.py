"""Tests for node conversion and page splitting."""

import pytest

from recap.errors import PublishingOverBudget
from recap.publish.nodes import html_to_nodes, serialize_nodes, serialized_size, top_level_blocks
from recap.publish.paginator import (
    CONTINUES_FOOTER,
    END_FOOTER,
    FIRST_PAGE_NOTICE,
    Paginator,
    paginate,
)

BUDGET = 8192
BUFFER = 1024
LIMIT = BUDGET - BUFFER


def _document(paragraphs: int, words: int = 60) -> str:
    return "".join(
        f"<p>Paragraph {i}: " + " ".join(["lorem"] * words) + "</p>" for i in range(paragraphs)
    )


def _body_blocks(page: str) -> list[str]:
    """Top-level blocks of a page without its two-block header and footer."""
    return top_level_blocks(page)[2:-2]


class TestNodes:
    """Tests for HTML to Telegraph node conversion."""

    def test_maps_headings_and_unwraps_unknown_tags(self) -> None:
        """Unsupported headings are mapped and wrappers are dropped."""
        nodes = html_to_nodes('<h1>Title</h1><div><a href="https://x.test" class="c">link</a></div>')

        assert nodes == [
            {"tag": "h3", "children": ["Title"]},
            {"tag": "a", "attrs": {"href": "https://x.test"}, "children": ["link"]},
        ]

    def test_void_elements_have_no_children(self) -> None:
        """<br> and <hr> become bare tag nodes."""
        assert html_to_nodes("<p>a<br>b</p><hr>") == [
            {"tag": "p", "children": ["a", {"tag": "br"}, "b"]},
            {"tag": "hr"},
        ]

    def test_entities_are_decoded(self) -> None:
        """Node text carries decoded characters, not entities."""
        assert html_to_nodes("<p>a &amp; b &lt;c&gt;</p>") == [{"tag": "p", "children": ["a & b <c>"]}]

    def test_serialized_size_counts_utf8_bytes(self) -> None:
        """Multi-byte characters count by encoded size."""
        html = "<p>héllo 🚀</p>"
        expected = len(serialize_nodes(html_to_nodes(html)).encode("utf-8"))

        assert serialized_size(html) == expected
        assert serialized_size(html) > len(serialize_nodes(html_to_nodes(html)))

    def test_top_level_blocks_skips_whitespace(self) -> None:
        """Whitespace between blocks is not a block."""
        assert top_level_blocks("<p>a</p>\n  <p>b</p>") == ["<p>a</p>", "<p>b</p>"]


class TestPaginate:
    """Tests for the paginator."""

    def test_fitting_document_is_returned_unchanged(self) -> None:
        """A document under budget comes back as exactly one identical page."""
        html = _document(3)

        assert paginate(html, "Recap", BUDGET, BUFFER) == [html]

    def test_every_page_within_budget(self) -> None:
        """Each page of a split document serializes within the budget."""
        html = _document(60)
        assert serialized_size(html) > LIMIT

        pages = paginate(html, "Recap", BUDGET, BUFFER)

        assert len(pages) > 1
        for page in pages:
            assert serialized_size(page) <= LIMIT

    def test_pages_preserve_block_sequence(self) -> None:
        """Concatenated page bodies reproduce the original blocks, none split."""
        html = _document(60)

        pages = paginate(html, "Recap", BUDGET, BUFFER)

        rebuilt = [block for page in pages for block in _body_blocks(page)]
        assert rebuilt == top_level_blocks(html)

    def test_headers_and_footers(self) -> None:
        """First page has the notice, later pages the continuation header."""
        pages = paginate(_document(60), "Recap", BUDGET, BUFFER)

        assert pages[0].startswith(FIRST_PAGE_NOTICE)
        assert "(continued, part 2)" in pages[1]
        for page in pages[:-1]:
            assert page.endswith(CONTINUES_FOOTER)
        assert pages[-1].endswith(END_FOOTER)

    def test_oversized_block_is_hard_split(self) -> None:
        """A single paragraph larger than a page is cut into fitting chunks."""
        text = " ".join(f"word{i}" for i in range(4000))
        html = f"<p><b>{text}</b></p>"

        pages = paginate(html, "Recap", BUDGET, BUFFER)

        assert len(pages) > 1
        for page in pages:
            assert serialized_size(page) <= LIMIT

        chunks = []
        for page in pages:
            for node in html_to_nodes("".join(_body_blocks(page))):
                assert node["tag"] == "p"
                chunks.extend(node["children"])
        assert " ".join(chunks) == text

    def test_oversized_block_between_normal_blocks(self) -> None:
        """Blocks around a hard-split block keep their order."""
        big = " ".join(["filler"] * 3000)
        html = "<p>before</p>" + f"<p>{big}</p>" + "<p>after</p>"

        pages = paginate(html, "Recap", BUDGET, BUFFER)

        bodies = [block for page in pages for block in _body_blocks(page)]
        assert bodies[0] == "<p>before</p>"
        assert bodies[-1] == "<p>after</p>"

    def test_oversized_block_without_text_is_rejected(self) -> None:
        """An image too large for a page cannot be split and is not dropped silently."""
        html = "<p>intro</p><figure><img src='" + "x" * 5000 + "'></figure><p>outro</p>"

        with pytest.raises(PublishingOverBudget):
            paginate(html, "Recap", 4096, 512)

    def test_reserve_leaves_room_on_every_page(self) -> None:
        """Pages cut with a reserve leave that many bytes of the budget unused."""
        paginator = Paginator(BUDGET, BUFFER)

        pages = paginator.paginate(_document(60), "Recap", reserve=1500)

        assert len(pages) > 1
        for page in pages:
            assert serialized_size(page) <= paginator.limit - 1500

    def test_budget_too_small_for_skeleton(self) -> None:
        """A budget that cannot hold the page chrome is rejected."""
        with pytest.raises(PublishingOverBudget):
            paginate(_document(5), "Recap", byte_budget=120, safety_buffer=20)

    def test_safety_buffer_must_fit_budget(self) -> None:
        """The buffer cannot consume the whole budget."""
        with pytest.raises(ValueError):
            Paginator(byte_budget=1024, safety_buffer=1024)

    def test_default_limit(self) -> None:
        """Default budget is 60 KiB minus a 2 KiB buffer."""
        assert Paginator().limit == 58 * 1024
