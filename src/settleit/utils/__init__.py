"""Utility functions for settleit."""

from settleit.utils.date_parser import parse_date
from settleit.utils.amount_parser import parse_amount, format_amount

__all__ = ["parse_date", "parse_amount", "format_amount"]
