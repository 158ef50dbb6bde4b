"""Publishing: pagination and the Telegraph client."""

from .nodes import html_to_nodes, serialize_nodes, serialized_size
from .paginator import PAGE_SIZE_LIMIT, SAFETY_BUFFER, Paginator, paginate
from .telegraph import TelegraphAPI, TelegraphPublisher, Throttle, build_series_index

__all__ = [
    "PAGE_SIZE_LIMIT",
    "SAFETY_BUFFER",
    "Paginator",
    "TelegraphAPI",
    "TelegraphPublisher",
    "Throttle",
    "build_series_index",
    "html_to_nodes",
    "paginate",
    "serialize_nodes",
    "serialized_size",
]
