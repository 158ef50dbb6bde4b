"""Error taxonomy for the recap pipeline."""


class RecapError(Exception):
    """Base class for recap pipeline errors."""


class TransientNetworkError(RecapError):
    """A remote call failed in a way that is worth retrying."""


class StoreError(RecapError):
    """Reading or writing the options/subscriber store failed."""


class InsufficientHistory(RecapError):
    """The history window holds too few messages to summarize."""

    def __init__(self, chat_id: int, count: int, minimum: int):
        self.chat_id = chat_id
        self.count = count
        self.minimum = minimum
        super().__init__(
            f"chat {chat_id} has {count} messages in window, need at least {minimum}"
        )


class EmptySummarization(RecapError):
    """Every topic summary came back empty."""


class PublishingError(RecapError):
    """The publishing service rejected a request or could not be reached."""


class PublishingOverBudget(PublishingError):
    """Content cannot be made to fit in a single page."""


class ChatPlatformError(RecapError):
    """The chat platform rejected a request."""


class MembershipRevoked(RecapError):
    """A subscriber is no longer a member of the chat they subscribed to."""

    def __init__(self, chat_id: int, user_id: int, status: str):
        self.chat_id = chat_id
        self.user_id = user_id
        self.status = status
        super().__init__(f"user {user_id} is no longer a member of {chat_id} (status={status})")


class PinLookupFailure(RecapError):
    """The last pinned message for a chat could not be looked up."""
