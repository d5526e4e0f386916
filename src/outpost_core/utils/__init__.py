"""Utility modules."""

from outpost_core.utils.polling import poll_until
from outpost_core.utils.validation import sanitize_dns_label, sql_literal

__all__ = ["poll_until", "sanitize_dns_label", "sql_literal"]
