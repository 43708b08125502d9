"""ithbat.parser: HTML to text/title/links conversion."""

from .html_parser import NOISE_TAGS, ParsedPage, parse_html

__all__ = ["NOISE_TAGS", "ParsedPage", "parse_html"]
