"""Delivery module - sends recaps to groups and private subscribers."""

from .fanout import FanOutDelivery
from .messages import compose_private_message, compose_recap_message, removal_notice

__all__ = [
    "FanOutDelivery",
    "compose_private_message",
    "compose_recap_message",
    "removal_notice",
]
