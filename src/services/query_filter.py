"""Compile parsed search queries into SQL predicates over bookmarks."""
from datetime import UTC, date, datetime, time, timedelta
from uuid import UUID

from sqlalchemy import and_, exists, func, not_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from models.bookmark import Bookmark
from models.bookmark_list import BookmarkList, ListType, bookmarks_in_lists
from models.tag import Tag, bookmark_tags
from services.exceptions import InvalidListQueryError
from services.search_query import (
    AndMatcher,
    ArchivedMatcher,
    DateAfterMatcher,
    DateBeforeMatcher,
    DomainMatcher,
    FavouritedMatcher,
    InListMatcher,
    ListNameMatcher,
    Matcher,
    OrMatcher,
    TaggedMatcher,
    TagMatcher,
    TitleMatcher,
    UrlMatcher,
    parse_search_query,
)
from services.utils import escape_ilike


def _start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=UTC)


def _contains(column: ColumnElement, value: str) -> ColumnElement[bool]:
    return column.ilike(f"%{escape_ilike(value)}%", escape="\\")


def _domain_filter(domain: str) -> ColumnElement[bool]:
    """
    Match URLs whose host is ``domain`` or a sub-domain of it.

    The host is delimited by "://" on the left and by "/", ":", "?", "#" or the
    end of the URL on the right.
    """
    escaped = escape_ilike(domain)
    patterns = []
    for host_prefix in ("%://", "%://%."):
        patterns.append(f"{host_prefix}{escaped}")
        patterns.extend(f"{host_prefix}{escaped}{end}%" for end in ("/", ":", "?", "#"))
    return or_(*(Bookmark.url.ilike(pattern, escape="\\") for pattern in patterns))


def _invert(clause: ColumnElement[bool], inverse: bool) -> ColumnElement[bool]:
    return not_(clause) if inverse else clause


def build_matcher_filter(matcher: Matcher) -> ColumnElement[bool]:  # noqa: PLR0911, PLR0912
    """
    Translate a matcher tree into a WHERE clause on ``Bookmark``.

    ``list:`` and ``is:inlist`` only look at stored (manual) membership, so a smart
    list can never depend on another smart list's evaluation.
    """
    if isinstance(matcher, AndMatcher):
        return and_(*(build_matcher_filter(m) for m in matcher.matchers))
    if isinstance(matcher, OrMatcher):
        return or_(*(build_matcher_filter(m) for m in matcher.matchers))

    if isinstance(matcher, TagMatcher):
        has_tag = exists().where(
            bookmark_tags.c.bookmark_id == Bookmark.id,
            bookmark_tags.c.tag_id == Tag.id,
            func.lower(Tag.name) == matcher.tag.lower(),
        )
        return _invert(has_tag, matcher.inverse)
    if isinstance(matcher, UrlMatcher):
        return _invert(_contains(Bookmark.url, matcher.url), matcher.inverse)
    if isinstance(matcher, DomainMatcher):
        return _invert(_domain_filter(matcher.domain), matcher.inverse)
    if isinstance(matcher, TitleMatcher):
        title_match = and_(
            Bookmark.title.is_not(None),
            _contains(Bookmark.title, matcher.title),
        )
        return _invert(title_match, matcher.inverse)
    if isinstance(matcher, ListNameMatcher):
        in_named_list = exists().where(
            bookmarks_in_lists.c.bookmark_id == Bookmark.id,
            bookmarks_in_lists.c.list_id == BookmarkList.id,
            BookmarkList.type == ListType.MANUAL,
            func.lower(BookmarkList.name) == matcher.list_name.lower(),
        )
        return _invert(in_named_list, matcher.inverse)

    if isinstance(matcher, FavouritedMatcher):
        return Bookmark.favourited == matcher.favourited
    if isinstance(matcher, ArchivedMatcher):
        return Bookmark.is_archived if matcher.archived else not_(Bookmark.is_archived)
    if isinstance(matcher, TaggedMatcher):
        has_any_tag = exists().where(bookmark_tags.c.bookmark_id == Bookmark.id)
        return has_any_tag if matcher.tagged else not_(has_any_tag)
    if isinstance(matcher, InListMatcher):
        in_any_list = exists().where(bookmarks_in_lists.c.bookmark_id == Bookmark.id)
        return in_any_list if matcher.in_list else not_(in_any_list)

    if isinstance(matcher, DateAfterMatcher):
        on_or_after = Bookmark.created_at >= _start_of_day(matcher.date_after)
        return _invert(on_or_after, matcher.inverse)
    if isinstance(matcher, DateBeforeMatcher):
        # "before:" is inclusive of the whole day
        next_day = _start_of_day(matcher.date_before + timedelta(days=1))
        return _invert(Bookmark.created_at < next_day, matcher.inverse)

    raise TypeError(f"Unsupported matcher: {type(matcher).__name__}")


async def evaluate_query(db: AsyncSession, query: str) -> list[UUID]:
    """
    Return the ids of active bookmarks matching a smart list query.

    The result is a snapshot of the corpus at call time. Soft-deleted bookmarks
    never match.

    Raises:
        InvalidListQueryError: If the query does not parse fully or contains
            free text (stored smart queries are validated, so this indicates
            corrupted data).
    """
    parsed = parse_search_query(query)
    if parsed.result != "full" or parsed.free_text_terms:
        raise InvalidListQueryError(query, parsed.error or "query contains free text")

    stmt = select(Bookmark.id).where(Bookmark.deleted_at.is_(None))
    if parsed.matcher is not None:
        stmt = stmt.where(build_matcher_filter(parsed.matcher))
    result = await db.execute(stmt)
    return list(result.scalars().all())
