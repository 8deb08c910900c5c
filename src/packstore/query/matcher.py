"""
Entry matcher.

Each predicate is an ordered chain: the first category present decides.
Name, then types, then free-text terms, then tags. The negative predicate
mirrors the chain with each check inverted and is only consulted when the
positive one did not already reject the entry.
"""

from typing import Iterable, List, Optional, Sequence, Union

from packstore.index.entry import Entry
from packstore.index.fields import normalize_tags

from .predicates import Predicate, TagFilter


def _tags_match(entry_tags: Sequence[str], tag_filter: TagFilter) -> bool:
    if tag_filter.no_tags:
        return not entry_tags
    if tag_filter.match_any_tag:
        return any(tag in entry_tags for tag in tag_filter.tags)
    return all(tag in entry_tags for tag in tag_filter.tags)


def _matches_positive(entry: Entry, predicate: Predicate) -> bool:
    if predicate.name:
        return predicate.name == entry.name
    if predicate.types:
        return entry.type in predicate.types
    if predicate.terms:
        name = entry.name.casefold()
        return all(term in name for term in predicate.terms)
    if predicate.tags:
        return _tags_match(entry.tags, predicate.tags)
    return True


def _excluded_by_negative(entry: Entry, predicate: Predicate) -> bool:
    if predicate.name:
        return predicate.name == entry.name
    if predicate.types:
        return entry.type in predicate.types
    if predicate.terms:
        name = entry.name.casefold()
        return any(term in name for term in predicate.terms)
    if predicate.tags:
        return _tags_match(entry.tags, predicate.tags)
    return False


def match_entry(
    entry: Entry,
    positive: Optional[Predicate] = None,
    negative: Optional[Predicate] = None,
) -> bool:
    """True when ``entry`` satisfies ``positive`` and is not excluded by ``negative``."""
    if positive is not None and not _matches_positive(entry, positive):
        return False
    if negative is not None and _excluded_by_negative(entry, negative):
        return False
    return True


def filter_entries(
    entries: Iterable[Entry],
    positive: Optional[Predicate] = None,
    negative: Optional[Predicate] = None,
) -> List[Entry]:
    return [entry for entry in entries if match_entry(entry, positive, negative)]


def build_predicate(
    name: Optional[str] = None,
    types: Optional[Union[str, Sequence[str]]] = None,
    tags: Optional[Union[str, Sequence[str]]] = None,
    match_any_tag: bool = True,
) -> Optional[Predicate]:
    """
    Structured search predicate, bypassing the text parser.

    ``types`` may be one type or a list; ``tags`` a list or a comma
    separated string. Tags are slugified the way they are on write.
    """
    if isinstance(types, str):
        types = [types]
    if isinstance(tags, str):
        tags = tags.split(",")

    tag_list = normalize_tags(list(tags)) if tags else []
    predicate = Predicate(
        name=name or None,
        types=list(types) if types else None,
        tags=TagFilter(tags=tag_list, match_any_tag=match_any_tag) if tag_list else None,
    )
    return None if predicate.is_empty() else predicate
