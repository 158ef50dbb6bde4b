"""Analysis module - LLM-powered chat summarization."""

from .formatting import build_page_html, build_page_title, split_into_batches
from .summarizer import Summarizer, fallback_condensed

__all__ = [
    "Summarizer",
    "build_page_html",
    "build_page_title",
    "fallback_condensed",
    "split_into_batches",
]
