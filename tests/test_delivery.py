"""Tests for fan-out delivery."""

from datetime import timedelta
from unittest.mock import Mock, call

from recap.deliver import FanOutDelivery
from recap.errors import ChatPlatformError, StoreError, TransientNetworkError
from recap.models import (
    ChatInfo,
    ChatType,
    DeliveryBatch,
    GroupBroadcast,
    MemberStatus,
    PageSeries,
    PrivateSubscriber,
    RecapOptions,
    SendMode,
    SentMessageRecord,
    Subscriber,
)

from conftest import CHAT_ID, NOW, make_platform

CHAT = ChatInfo(id=CHAT_ID, type=ChatType.SUPERGROUP, title="Team Chat")


def _batch(url: str = "https://telegra.ph/recap") -> DeliveryBatch:
    return DeliveryBatch(pages=PageSeries(urls=(url,)), page_title="[Team Chat] Auto 6-hour recap", condensed="Busy")


def _delivery(platform, store, limiter=None, sleep=None) -> FanOutDelivery:
    return FanOutDelivery(
        platform=platform,
        store=store,
        limiter=limiter or Mock(),
        unsubscribe_attempts=5,
        unsubscribe_delay=60.0,
        platform_attempts=3,
        platform_retry_delay=1.0,
        sleep=sleep or Mock(),
    )


def _subs(*user_ids: int) -> list[Subscriber]:
    return [Subscriber(chat_id=CHAT_ID, user_id=user_id) for user_id in user_ids]


class TestResolveTargets:
    """Tests for target resolution and membership checks."""

    def test_public_mode_includes_group_and_members(self) -> None:
        """Publicly mode targets the group and every current member."""
        delivery = _delivery(make_platform(), Mock())

        targets = delivery.resolve_targets(CHAT, RecapOptions(chat_id=CHAT_ID), _subs(1, 2))

        assert targets == [
            GroupBroadcast(chat_id=CHAT_ID),
            PrivateSubscriber(user_id=1),
            PrivateSubscriber(user_id=2),
        ]

    def test_missing_options_means_public(self) -> None:
        """Without options the group is still a target."""
        targets = _delivery(make_platform(), Mock()).resolve_targets(CHAT, None, [])

        assert targets == [GroupBroadcast(chat_id=CHAT_ID)]

    def test_private_mode_excludes_group(self) -> None:
        """Private-only mode never posts in the group."""
        options = RecapOptions(chat_id=CHAT_ID, send_mode=SendMode.ONLY_PRIVATE_SUBSCRIPTIONS)

        targets = _delivery(make_platform(), Mock()).resolve_targets(CHAT, options, _subs(1))

        assert targets == [PrivateSubscriber(user_id=1)]

    def test_left_member_is_unsubscribed_once_and_notified(self, store) -> None:
        """A subscriber who left is dropped, removed and told about it."""
        store.subscribe(CHAT_ID, 1)
        store.subscribe(CHAT_ID, 2)
        platform = make_platform(statuses={2: MemberStatus.LEFT})
        delivery = _delivery(platform, store)

        targets = delivery.resolve_targets(CHAT, RecapOptions(chat_id=CHAT_ID), store.find_subscribers(CHAT_ID))

        assert PrivateSubscriber(user_id=2) not in targets
        assert [s.user_id for s in store.find_subscribers(CHAT_ID)] == [1]
        notices = [c for c in platform.send_message.call_args_list if c.args[0] == 2]
        assert len(notices) == 1
        assert "no longer a member" in notices[0].args[1]

    def test_kicked_member_unsubscribe_retries(self) -> None:
        """Store failures during unsubscribe are retried with the configured delay."""
        store = Mock()
        store.unsubscribe.side_effect = [StoreError("locked"), True]
        sleep = Mock()
        platform = make_platform(statuses={7: MemberStatus.KICKED})

        targets = _delivery(platform, store, sleep=sleep).resolve_targets(CHAT, None, _subs(7))

        assert targets == [GroupBroadcast(chat_id=CHAT_ID)]
        assert store.unsubscribe.call_args_list == [call(CHAT_ID, 7), call(CHAT_ID, 7)]
        sleep.assert_called_once_with(60.0)

    def test_lookup_failure_skips_without_unsubscribing(self, store) -> None:
        """A failed membership lookup only skips the subscriber this time."""
        store.subscribe(CHAT_ID, 3)
        platform = make_platform()
        platform.get_chat_member.side_effect = TransientNetworkError("timeout")

        targets = _delivery(platform, store).resolve_targets(CHAT, None, store.find_subscribers(CHAT_ID))

        assert targets == [GroupBroadcast(chat_id=CHAT_ID)]
        assert store.find_subscribers(CHAT_ID) == _subs(3)
        platform.send_message.assert_not_called()


class TestSendBatches:
    """Tests for sending, batching and pinning."""

    def test_every_send_goes_through_limiter(self) -> None:
        """Each outbound message takes a token."""
        limiter = Mock()
        delivery = _delivery(make_platform(), Mock(), limiter=limiter)

        sent = delivery.deliver(CHAT, None, _subs(1, 2), [_batch()])

        assert len(sent) == 3
        assert limiter.acquire.call_count == 3

    def test_private_targets_get_greeting(self) -> None:
        """Private copies name the group; the group copy does not."""
        platform = make_platform()

        _delivery(platform, Mock()).deliver(CHAT, None, _subs(1), [_batch()])

        texts = {c.args[0]: c.args[1] for c in platform.send_message.call_args_list}
        assert texts[1].startswith("Hello, here is the scheduled recap of <b>Team Chat</b>")
        assert not texts[CHAT_ID].startswith("Hello")
        assert "https://telegra.ph/recap" in texts[CHAT_ID]

    def test_batches_get_counter_suffix(self) -> None:
        """Multiple batches are numbered (i/n)."""
        platform = make_platform()

        _delivery(platform, Mock()).deliver(CHAT, None, [], [_batch("https://telegra.ph/1"), _batch("https://telegra.ph/2")])

        texts = [c.args[1] for c in platform.send_message.call_args_list]
        assert texts[0].endswith(" (1/2)")
        assert texts[1].endswith(" (2/2)")

    def test_failed_target_does_not_stop_others(self) -> None:
        """A send failure for one target leaves the rest unaffected."""
        platform = make_platform()
        ok = platform.send_message.side_effect

        def flaky(chat_id, text, **kwargs):
            if chat_id == 1:
                raise ChatPlatformError("bot was blocked by the user")
            return ok(chat_id, text, **kwargs)

        platform.send_message.side_effect = flaky

        sent = _delivery(platform, Mock()).deliver(CHAT, None, _subs(1, 2), [_batch()])

        assert sorted(message.chat_id for message in sent) == sorted([CHAT_ID, 2])

    def test_transient_send_failure_is_retried(self) -> None:
        """A send that hits a 502 is retried after the platform delay, taking a fresh token."""
        platform = make_platform()
        ok = platform.send_message.side_effect
        platform.send_message.side_effect = [TransientNetworkError("HTTP 502"), ok(CHAT_ID, "recap")]
        limiter = Mock()
        sleep = Mock()

        sent = _delivery(platform, Mock(), limiter=limiter, sleep=sleep).deliver(CHAT, None, [], [_batch()])

        assert [message.chat_id for message in sent] == [CHAT_ID]
        assert platform.send_message.call_count == 2
        assert limiter.acquire.call_count == 2
        sleep.assert_called_once_with(1.0)

    def test_pin_replaces_previous_pin(self, store) -> None:
        """The old pin is released before the new one is pinned and recorded."""
        store.save_sent_message(
            SentMessageRecord(chat_id=CHAT_ID, message_id=10, is_pinned=True, sent_at=NOW - timedelta(hours=6))
        )
        platform = make_platform()
        options = RecapOptions(chat_id=CHAT_ID, pin_enabled=True)

        sent = _delivery(platform, store).deliver(CHAT, options, [], [_batch(), _batch()])

        first = sent[0]
        pin_calls = [c for c in platform.mock_calls if c[0] in ("unpin_message", "pin_message")]
        assert pin_calls == [call.unpin_message(CHAT_ID, 10), call.pin_message(CHAT_ID, first.message_id)]
        assert store.count_pinned(CHAT_ID) == 1
        assert store.find_last_pinned_message(CHAT_ID).message_id == first.message_id

    def test_pin_only_for_group_target(self, store) -> None:
        """Private copies are never pinned."""
        platform = make_platform()
        options = RecapOptions(chat_id=CHAT_ID, pin_enabled=True)

        _delivery(platform, store).deliver(CHAT, options, _subs(1), [_batch()])

        assert platform.pin_message.call_count == 1
        assert platform.pin_message.call_args.args[0] == CHAT_ID

    def test_no_pin_when_disabled(self, store) -> None:
        """Pinning is opt-in; messages are still recorded."""
        platform = make_platform()

        sent = _delivery(platform, store).deliver(CHAT, RecapOptions(chat_id=CHAT_ID), [], [_batch()])

        platform.pin_message.assert_not_called()
        assert store.find_last_pinned_message(CHAT_ID) is None
        assert len(sent) == 1

    def test_pin_lookup_failure_skips_pin(self) -> None:
        """If the previous pin cannot be found, nothing is pinned."""
        store = Mock()
        store.find_last_pinned_message.side_effect = StoreError("disk I/O error")
        platform = make_platform()
        options = RecapOptions(chat_id=CHAT_ID, pin_enabled=True)

        _delivery(platform, store).deliver(CHAT, options, [], [_batch()])

        platform.pin_message.assert_not_called()
        record = store.save_sent_message.call_args.args[0]
        assert record.is_pinned is False

    def test_unpin_bookkeeping_failure_skips_pin(self) -> None:
        """If the old pin cannot be marked released, the new message is recorded unpinned."""
        store = Mock()
        store.find_last_pinned_message.return_value = SentMessageRecord(
            chat_id=CHAT_ID, message_id=10, is_pinned=True, sent_at=NOW - timedelta(hours=6)
        )
        store.update_pinned.side_effect = StoreError("database is locked")
        platform = make_platform()
        options = RecapOptions(chat_id=CHAT_ID, pin_enabled=True)

        _delivery(platform, store).deliver(CHAT, options, [], [_batch()])

        platform.unpin_message.assert_called_once_with(CHAT_ID, 10)
        platform.pin_message.assert_not_called()
        record = store.save_sent_message.call_args.args[0]
        assert record.is_pinned is False
