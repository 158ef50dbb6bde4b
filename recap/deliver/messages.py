"""Message templates for recap delivery (Telegram HTML parse mode)."""

import html

from recap.models import ChatType, DeliveryBatch

BASIC_GROUP_TIP = (
    "<b>Tip:</b> this group is not a supergroup, so links back to individual "
    "messages are disabled. Upgrade the group to a supergroup (for example by "
    "making it public for a moment) to turn them on.\n\n"
)


def compose_recap_message(
    batch: DeliveryBatch,
    chat_type: ChatType,
    model_name: str,
    part: int | None = None,
    total: int | None = None,
) -> str:
    """Group-facing recap message for one batch."""
    pages = batch.pages
    multi_page = ""
    if len(pages) > 1:
        multi_page = f"\n\n<b>Note:</b> this recap is long, so it was split into {len(pages)} pages:"
        for index, url in enumerate(pages.urls, start=1):
            multi_page += f'\n- <a href="{html.escape(url)}">Part {index}</a>'

    tip = BASIC_GROUP_TIP if chat_type == ChatType.GROUP else ""
    content = (
        f'📝 <b>Auto chat recap published to Telegraph</b>: '
        f'<a href="{html.escape(pages.canonical_url)}">{html.escape(batch.page_title)}</a>'
        f"{multi_page}\n\n"
        f"<b>In short:</b>\n{html.escape(batch.condensed, quote=False)}\n\n"
        f"{tip}#recap #recap_auto\n"
        f"🤖️ Generated by {html.escape(model_name)}"
    )
    if part is not None and total is not None and total > 1:
        content = f"{content} ({part}/{total})"
    return content


def compose_private_message(chat_title: str, content: str) -> str:
    """Prefix a recap with a greeting for a private subscriber."""
    title = html.escape(chat_title or "your group")
    return f"Hello, here is the scheduled recap of <b>{title}</b> you subscribed to.\n\n{content}"


def removal_notice(chat_title: str) -> str:
    """Sent once when a subscriber is dropped for leaving the group."""
    title = html.escape(chat_title or "the group")
    return (
        f"You are no longer a member of <b>{title}</b>, so your subscription to "
        f"its scheduled recaps has been cancelled. Re-join the group and "
        f"subscribe again to resume receiving them."
    )
