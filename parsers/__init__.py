"""
Import file parsers module.
"""

from parsers.country_file_parser import (
    HEADER_ALIASES,
    detect_file_format,
    iter_country_rows,
    parse_country_file,
)

__all__ = [
    "HEADER_ALIASES",
    "detect_file_format",
    "iter_country_rows",
    "parse_country_file",
]
