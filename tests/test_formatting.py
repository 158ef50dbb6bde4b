"""Tests for rendering helpers and delivery message templates."""

from datetime import datetime

from recap.analyze.formatting import (
    Topic,
    build_page_html,
    build_page_title,
    format_history,
    markdown_to_html,
    message_link,
    render_topic,
    split_into_batches,
)
from recap.deliver.messages import (
    BASIC_GROUP_TIP,
    compose_private_message,
    compose_recap_message,
    removal_notice,
)
from recap.models import ChatType, DeliveryBatch, PageSeries

from conftest import make_messages


def _batch(urls: tuple[str, ...] = ("https://telegra.ph/a",), condensed: str = "Busy day") -> DeliveryBatch:
    return DeliveryBatch(pages=PageSeries(urls=urls), page_title="[Team] Auto 6-hour recap", condensed=condensed)


class TestFormatting:
    """Tests for topic and page rendering."""

    def test_message_link_strips_supergroup_prefix(self) -> None:
        """Supergroup ids lose their -100 prefix in links."""
        assert message_link(-1001234, 55, ChatType.SUPERGROUP) == "https://t.me/c/1234/55"
        assert message_link(-1234, 55, ChatType.GROUP) is None

    def test_format_history_keeps_most_recent(self) -> None:
        """Over budget, the oldest lines are dropped."""
        messages = make_messages(10)

        text = format_history(messages, max_chars=120)

        assert "message number 9" in text
        assert "message number 0" not in text
        assert len(text) <= 120

    def test_format_history_line_shape(self) -> None:
        """Lines carry the id, sender and text."""
        text = format_history(make_messages(1))

        assert text == "100: [Alice] message number 0 about the release"

    def test_render_topic_without_content_is_empty(self) -> None:
        """A topic with nothing in it renders to an empty string."""
        assert render_topic(Topic(), 1, ChatType.SUPERGROUP) == ""

    def test_markdown_to_html(self) -> None:
        """Headings, lists and inline markup are converted and escaped."""
        text = "## [Plan](https://t.me/c/1/2)\n\n**Participants**: A & B\n\n- one _two_\n- three"

        html = markdown_to_html(text)

        assert html == (
            '<h3><a href="https://t.me/c/1/2">Plan</a></h3>'
            "<p><b>Participants</b>: A &amp; B</p>"
            "<ul><li>one <i>two</i></li><li>three</li></ul>"
        )

    def test_split_into_batches(self) -> None:
        """Batches stay under the limit; oversized texts stand alone."""
        batches = split_into_batches(["a" * 40, "b" * 40, "c" * 100, "d" * 10], limit=90)

        assert batches == [["a" * 40, "b" * 40], ["c" * 100], ["d" * 10]]

    def test_page_title_and_html(self) -> None:
        """The page has a time-range header and model footer."""
        html = build_page_html(["## Topic"], 6, datetime(2026, 3, 2, 12, 0, 0), "gpt-4o-mini")

        assert build_page_title("Team", 6) == "[Team] Auto 6-hour recap"
        assert "the 6 hours before 2026/03/02 12:00:00" in html
        assert "<h3>Topic</h3>" in html
        assert html.endswith("<hr><p><em>Generated by gpt-4o-mini</em></p>")


class TestMessages:
    """Tests for delivery message templates."""

    def test_recap_message_contents(self) -> None:
        """Link, condensed text, tags and model are present."""
        text = compose_recap_message(_batch(), ChatType.SUPERGROUP, "gpt-4o-mini")

        assert '<a href="https://telegra.ph/a">[Team] Auto 6-hour recap</a>' in text
        assert "Busy day" in text
        assert "#recap #recap_auto" in text
        assert "gpt-4o-mini" in text
        assert BASIC_GROUP_TIP not in text

    def test_basic_group_gets_tip(self) -> None:
        """Basic groups are told why message links are missing."""
        text = compose_recap_message(_batch(), ChatType.GROUP, "m")

        assert BASIC_GROUP_TIP in text

    def test_multi_page_links_and_suffix(self) -> None:
        """Multi-page series list their parts; batches get an (i/n) suffix."""
        text = compose_recap_message(
            _batch(urls=("https://telegra.ph/a", "https://telegra.ph/b")),
            ChatType.SUPERGROUP,
            "m",
            part=2,
            total=3,
        )

        assert '<a href="https://telegra.ph/b">Part 2</a>' in text
        assert text.endswith(" (2/3)")

    def test_single_batch_has_no_suffix(self) -> None:
        """One batch means no counter."""
        text = compose_recap_message(_batch(), ChatType.SUPERGROUP, "m", part=1, total=1)

        assert not text.endswith("(1/1)")

    def test_condensed_text_is_escaped(self) -> None:
        """Model output cannot inject markup."""
        text = compose_recap_message(_batch(condensed="<b>x</b> & y"), ChatType.SUPERGROUP, "m")

        assert "&lt;b&gt;x&lt;/b&gt; &amp; y" in text

    def test_private_greeting_and_notice(self) -> None:
        """Private messages name the group."""
        assert compose_private_message("Team <1>", "body").startswith(
            "Hello, here is the scheduled recap of <b>Team &lt;1&gt;</b>"
        )
        assert "<b>Team</b>" in removal_notice("Team")
