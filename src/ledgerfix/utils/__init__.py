"""Utility functions for ledgerfix."""

from ledgerfix.utils.date_parser import parse_date, to_date
from ledgerfix.utils.amount_parser import parse_amount, to_decimal

__all__ = ["parse_date", "to_date", "parse_amount", "to_decimal"]
