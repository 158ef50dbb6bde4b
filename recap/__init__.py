"""Chat Recap - scheduled LLM recaps of group chats, published to Telegraph."""

__version__ = "0.1.0"
