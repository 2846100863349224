"""
Parser for the bookmark search language.

Smart lists store their definition as a search query. This module turns a raw
query string into a matcher tree (structured qualifiers) and a list of
free-text terms (everything that is not a qualifier). It does no I/O; the
matcher tree is compiled to SQL by ``services.query_filter``.

Supported syntax:

    #tag  tag:name          bookmark has the tag
    url:text                url contains text
    domain:example.com      url host is example.com or a sub-domain of it
    title:text              title contains text
    list:name               bookmark is in the manual list with that name
    is:fav | is:archived | is:tagged | is:inlist
    after:2024-01-31  before:2024-01-31      created on/after, on/before the day
    -qualifier  !qualifier  negation
    a and b   a b           conjunction (juxtaposition is an implicit "and")
    a or b                  disjunction
    ( ... )                 grouping
    "quoted value"          values and text containing spaces
"""
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Literal

ParseResult = Literal["full", "partial", "invalid"]


@dataclass(frozen=True)
class TagMatcher:
    """Bookmark carries the tag (case-insensitive)."""

    tag: str
    inverse: bool = False


@dataclass(frozen=True)
class UrlMatcher:
    """Bookmark URL contains the text."""

    url: str
    inverse: bool = False


@dataclass(frozen=True)
class DomainMatcher:
    """Bookmark URL host is the domain or one of its sub-domains."""

    domain: str
    inverse: bool = False


@dataclass(frozen=True)
class TitleMatcher:
    """Bookmark title contains the text."""

    title: str
    inverse: bool = False


@dataclass(frozen=True)
class ListNameMatcher:
    """Bookmark is stored in the manual list with this name."""

    list_name: str
    inverse: bool = False


@dataclass(frozen=True)
class FavouritedMatcher:
    favourited: bool


@dataclass(frozen=True)
class ArchivedMatcher:
    archived: bool


@dataclass(frozen=True)
class TaggedMatcher:
    tagged: bool


@dataclass(frozen=True)
class InListMatcher:
    in_list: bool


@dataclass(frozen=True)
class DateAfterMatcher:
    """Bookmark was created on or after the day (before it when inverse)."""

    date_after: date
    inverse: bool = False


@dataclass(frozen=True)
class DateBeforeMatcher:
    """Bookmark was created on or before the day (after it when inverse)."""

    date_before: date
    inverse: bool = False


@dataclass(frozen=True)
class AndMatcher:
    matchers: tuple["Matcher", ...]


@dataclass(frozen=True)
class OrMatcher:
    matchers: tuple["Matcher", ...]


Matcher = (
    TagMatcher
    | UrlMatcher
    | DomainMatcher
    | TitleMatcher
    | ListNameMatcher
    | FavouritedMatcher
    | ArchivedMatcher
    | TaggedMatcher
    | InListMatcher
    | DateAfterMatcher
    | DateBeforeMatcher
    | AndMatcher
    | OrMatcher
)


@dataclass
class ParsedSearchQuery:
    """
    Outcome of parsing a query string.

    Attributes:
        result: "full" when the whole input was consumed, "partial" when a valid
            prefix was parsed but input remains, "invalid" when nothing usable parsed.
        text: Free-text terms joined by single spaces.
        free_text_terms: Each unqualified term in input order.
        matcher: Tree of qualifiers, or None when the query has no qualifiers.
        error: Human readable reason for a non-full result.
    """

    result: ParseResult
    text: str = ""
    free_text_terms: list[str] = field(default_factory=list)
    matcher: Matcher | None = None
    error: str | None = None


@dataclass(frozen=True)
class QueryValidation:
    """Answer of the query validator: does it parse, and is it qualifiers only."""

    parsed: bool
    has_free_text: bool
    free_text_terms: list[str] = field(default_factory=list)


class QuerySyntaxError(Exception):
    """Raised internally when the parser cannot continue."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


IS_VALUES = frozenset({"fav", "archived", "tagged", "inlist"})
VALUE_QUALIFIERS = frozenset({"url", "domain", "title", "list", "tag"})
DATE_QUALIFIERS = frozenset({"after", "before"})

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
# A word is a run of plain characters and complete "quoted" segments
WORD_PATTERN = re.compile(r'(?:[^\s()"]+|"[^"]*")+')
QUALIFIER_PATTERN = re.compile(r"^([a-z]+):(.*)$", re.IGNORECASE | re.DOTALL)


@dataclass(frozen=True)
class _Token:
    kind: Literal["lparen", "rparen", "and", "or", "word"]
    text: str


def _tokenize(query: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    length = len(query)
    while pos < length:
        char = query[pos]
        if char.isspace():
            pos += 1
            continue
        if char == "(":
            tokens.append(_Token("lparen", char))
            pos += 1
            continue
        if char == ")":
            tokens.append(_Token("rparen", char))
            pos += 1
            continue
        match = WORD_PATTERN.match(query, pos)
        if match is None:
            # Only an opening quote without its closing partner ends up here
            raise QuerySyntaxError(f"Unterminated quote at position {pos}")
        word = match.group(0)
        lowered = word.lower()
        if lowered in ("and", "or"):
            tokens.append(_Token(lowered, word))  # type: ignore[arg-type]
        else:
            tokens.append(_Token("word", word))
        pos = match.end()
        if pos < length and query[pos] == '"':
            raise QuerySyntaxError(f"Unterminated quote at position {pos}")
    return tokens


def _unquote(value: str) -> str:
    return value.replace('"', "")


def _parse_date(raw: str, qualifier: str) -> date:
    if not DATE_PATTERN.match(raw):
        raise QuerySyntaxError(f"'{qualifier}:' expects a date in YYYY-MM-DD format")
    try:
        return date.fromisoformat(raw)
    except ValueError as e:
        raise QuerySyntaxError(f"Invalid date for '{qualifier}:': {raw}") from e


def _parse_qualifier(word: str) -> Matcher | None:  # noqa: PLR0911
    """
    Interpret a single word as a qualifier.

    Returns None when the word is free text. Raises QuerySyntaxError when the
    word is clearly meant as a qualifier but is malformed.
    """
    inverse = False
    body = word
    if body[:1] in ("-", "!") and len(body) > 1:
        inverse = True
        body = body[1:]

    if body.startswith("#"):
        tag = _unquote(body[1:]).strip()
        if not tag:
            raise QuerySyntaxError("'#' must be followed by a tag name")
        return TagMatcher(tag=tag, inverse=inverse)

    match = QUALIFIER_PATTERN.match(body)
    if match is None:
        return None
    name = match.group(1).lower()
    value = _unquote(match.group(2)).strip()

    if name == "is":
        if value.lower() not in IS_VALUES:
            raise QuerySyntaxError(f"Unknown value for 'is:': {value!r}")
        flag = not inverse
        return {
            "fav": FavouritedMatcher(favourited=flag),
            "archived": ArchivedMatcher(archived=flag),
            "tagged": TaggedMatcher(tagged=flag),
            "inlist": InListMatcher(in_list=flag),
        }[value.lower()]

    if name in DATE_QUALIFIERS:
        parsed_date = _parse_date(value, name)
        if name == "after":
            return DateAfterMatcher(date_after=parsed_date, inverse=inverse)
        return DateBeforeMatcher(date_before=parsed_date, inverse=inverse)

    if name in VALUE_QUALIFIERS:
        if not value:
            raise QuerySyntaxError(f"'{name}:' must be followed by a value")
        if name == "tag":
            return TagMatcher(tag=value, inverse=inverse)
        if name == "url":
            return UrlMatcher(url=value, inverse=inverse)
        if name == "domain":
            return DomainMatcher(domain=value.lower(), inverse=inverse)
        if name == "title":
            return TitleMatcher(title=value, inverse=inverse)
        return ListNameMatcher(list_name=value, inverse=inverse)

    # Unknown prefixes (e.g. "foo:bar", "https://...") are plain text
    return None


def _combine(kind: type[AndMatcher] | type[OrMatcher], parts: list[Matcher]) -> Matcher | None:
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    return kind(matchers=tuple(parts))


class _Parser:
    """Recursive-descent parser over the token list."""

    def __init__(self, tokens: list[_Token]) -> None:
        self.tokens = tokens
        self.pos = 0
        self.free_text_terms: list[str] = []

    def peek(self) -> _Token | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def parse_or(self) -> Matcher | None:
        parts = [self.parse_and()]
        while (token := self.peek()) is not None and token.kind == "or":
            self.pos += 1
            if not self._starts_unary():
                raise QuerySyntaxError("'or' must be followed by a term")
            parts.append(self.parse_and())
        return _combine(OrMatcher, [part for part in parts if part is not None])

    def parse_and(self) -> Matcher | None:
        if not self._starts_unary():
            token = self.peek()
            found = token.text if token else "end of query"
            raise QuerySyntaxError(f"Expected a term but found {found!r}")
        parts = [self.parse_unary()]
        while (token := self.peek()) is not None and token.kind in ("and", "word", "lparen"):
            if token.kind == "and":
                self.pos += 1
                if not self._starts_unary():
                    raise QuerySyntaxError("'and' must be followed by a term")
            parts.append(self.parse_unary())
        return _combine(AndMatcher, [part for part in parts if part is not None])

    def parse_unary(self) -> Matcher | None:
        token = self.peek()
        if token is None:
            raise QuerySyntaxError("Unexpected end of query")
        self.pos += 1
        if token.kind == "lparen":
            if (inner := self.peek()) is not None and inner.kind == "rparen":
                raise QuerySyntaxError("Empty parentheses")
            matcher = self.parse_or()
            closing = self.peek()
            if closing is None or closing.kind != "rparen":
                raise QuerySyntaxError("Missing closing parenthesis")
            self.pos += 1
            return matcher
        matcher = _parse_qualifier(token.text)
        if matcher is None:
            self.free_text_terms.append(_unquote(token.text))
        return matcher

    def _starts_unary(self) -> bool:
        token = self.peek()
        return token is not None and token.kind in ("word", "lparen")


def parse_search_query(query: str) -> ParsedSearchQuery:
    """
    Parse a search query into qualifiers and free text.

    Never raises for bad input; syntax problems are reported through
    ``result`` and ``error``.
    """
    try:
        tokens = _tokenize(query)
    except QuerySyntaxError as e:
        return ParsedSearchQuery(result="invalid", error=str(e))

    if not tokens:
        return ParsedSearchQuery(result="full")

    parser = _Parser(tokens)
    try:
        matcher = parser.parse_or()
    except QuerySyntaxError as e:
        return ParsedSearchQuery(
            result="invalid",
            text=" ".join(parser.free_text_terms),
            free_text_terms=parser.free_text_terms,
            error=str(e),
        )

    result: ParseResult = "full"
    error = None
    if not parser.at_end():
        result = "partial"
        leftover = parser.peek()
        error = f"Unexpected {leftover.text!r}" if leftover else None

    return ParsedSearchQuery(
        result=result,
        text=" ".join(parser.free_text_terms),
        free_text_terms=parser.free_text_terms,
        matcher=matcher,
        error=error,
    )


def validate_query(query: str) -> QueryValidation:
    """
    Classify a query for use as a smart list definition.

    ``parsed`` is True only when the whole string parsed. ``has_free_text`` is
    True when at least one unqualified term was found.
    """
    parsed = parse_search_query(query)
    return QueryValidation(
        parsed=parsed.result == "full",
        has_free_text=bool(parsed.free_text_terms),
        free_text_terms=list(parsed.free_text_terms),
    )
