"""
Free-text query parser.

Grammar (whitespace separated tokens):

    -token      route the token to the negative predicate
    #tag        tag filter, slugged like stored tags; ``#null`` means "no tags"
    @type       type filter (exact, case-sensitive)
    word        free-text term, substring of the entry name (case-folded)

Tokens shorter than MIN_TOKEN_LENGTH once the sign and sigil are stripped
are discarded.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from packstore.index.fields import slugify

from .predicates import Predicate, TagFilter

MIN_TOKEN_LENGTH = 3

NEGATION = "-"
TAG_SIGIL = "#"
TYPE_SIGIL = "@"
NO_TAGS = "null"


@dataclass
class _Tokens:
    terms: List[str] = field(default_factory=list)
    types: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    no_tags: bool = False

    def add(self, token: str) -> None:
        if token.startswith(TAG_SIGIL):
            tag = token[len(TAG_SIGIL):].casefold()
            if len(tag) < MIN_TOKEN_LENGTH:
                return
            if tag == NO_TAGS:
                self.no_tags = True
                return
            # Same form as stored tags
            slug = slugify(tag)
            if slug:
                self.tags.append(slug)
        elif token.startswith(TYPE_SIGIL):
            type_ = token[len(TYPE_SIGIL):]
            if len(type_) >= MIN_TOKEN_LENGTH:
                self.types.append(type_)
        elif len(token) >= MIN_TOKEN_LENGTH:
            self.terms.append(token.casefold())

    def to_predicate(self, match_any_tag: bool) -> Optional[Predicate]:
        tag_filter = None
        if self.tags or self.no_tags:
            tag_filter = TagFilter(tags=self.tags, match_any_tag=match_any_tag, no_tags=self.no_tags)

        predicate = Predicate(
            terms=self.terms or None,
            types=self.types or None,
            tags=tag_filter,
        )
        return None if predicate.is_empty() else predicate


def parse_query(
    text: str,
    match_any_tag: bool = True,
) -> Tuple[Optional[Predicate], Optional[Predicate]]:
    """
    Parse a search string into ``(positive, negative)`` predicates.

    Pure: the same input always yields an equal result. Either side is None
    when the query puts no constraint on it.
    """
    positive = _Tokens()
    negative = _Tokens()

    for token in text.split():
        if token.startswith(NEGATION):
            negative.add(token[len(NEGATION):])
        else:
            positive.add(token)

    return positive.to_predicate(match_any_tag), negative.to_predicate(match_any_tag)
