"""
Structured search predicates.

A predicate only carries the categories that constrain something; an empty
category is None, never an empty list.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class TagFilter:
    """Tag constraint of a predicate."""
    tags: List[str] = field(default_factory=list)
    match_any_tag: bool = True
    # Match on "entry has zero tags" instead of on ``tags``
    no_tags: bool = False


@dataclass
class Predicate:
    """Positive or negative search constraint."""
    name: Optional[str] = None
    terms: Optional[List[str]] = None
    types: Optional[List[str]] = None
    tags: Optional[TagFilter] = None

    def is_empty(self) -> bool:
        return not (self.name or self.terms or self.types or self.tags)
