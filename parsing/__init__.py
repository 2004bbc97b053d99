"""Workbook parsing for JobBoss and customer order lists."""

from parsing.excel_parser import (
    ParseError,
    parse_jobboss_file,
    parse_customer_file,
    parse_order_file,
)

__all__ = [
    "ParseError",
    "parse_jobboss_file",
    "parse_customer_file",
    "parse_order_file",
]
