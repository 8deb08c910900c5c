"""packstore query engine - text query parser and entry matcher."""

from .matcher import build_predicate, filter_entries, match_entry
from .parser import MIN_TOKEN_LENGTH, parse_query
from .predicates import Predicate, TagFilter

__all__ = [
    "MIN_TOKEN_LENGTH",
    "Predicate",
    "TagFilter",
    "build_predicate",
    "filter_entries",
    "match_entry",
    "parse_query",
]
