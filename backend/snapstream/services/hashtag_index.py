"""
SnapStream Backend — Hashtag Index
====================================

What:  Turns a snap's free-text hashtag field into `snap_hashtags` rows.
How:   Tokenizes on runs of whitespace and commas, keeps tokens starting
       with '#', de-duplicates, and inserts each tag inside its own SAVEPOINT
       within the caller's transaction.
Who:   SnapService (write path and read-by-id) and FeedService (fallback parse
       when a snap has no association rows).

Per-tag failure policy (intentional, lenient):
    A malformed tag (bare '#', longer than MAX_HASHTAG_LENGTH) or a database
    error on one tag's insert is logged and skipped. The savepoint keeps the
    outer transaction usable, so the snap and the remaining tags still
    commit. Skipped tags are returned as warnings for the upload response.
    Errors outside this per-tag scope propagate and abort the whole upload.
"""

import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from snapstream.models.snap import MAX_HASHTAG_LENGTH, SnapHashtag

logger = logging.getLogger(__name__)

HASHTAG_SIGIL = "#"
_SEPARATORS = re.compile(r"[\s,]+")


def parse_hashtags(raw: Optional[str], valid_only: bool = False) -> List[str]:
    """
    Extract hashtags from a raw string.

    Rules:
        - Split on runs of whitespace and/or commas
        - Keep only tokens that start with '#'
        - De-duplicate, preserving first-seen order
        - With valid_only, also drop tokens the index would refuse to store

    Example:
        >>> parse_hashtags("#foo, #bar  baz #foo")
        ['#foo', '#bar']
    """
    if not raw:
        return []

    seen = set()
    tags = []
    for token in _SEPARATORS.split(raw):
        if not token.startswith(HASHTAG_SIGIL) or token in seen:
            continue
        if valid_only and _tag_problem(token):
            continue
        seen.add(token)
        tags.append(token)
    return tags


def display_hashtags(stored: Optional[List[str]], raw: Optional[str]) -> List[str]:
    """
    The tag list shown for a snap: its stored rows, or the storable tags of
    the raw field when it has none. Always sorted.
    """
    return sorted(stored or parse_hashtags(raw, valid_only=True))


@dataclass
class HashtagIndexResult:
    """Outcome of indexing one snap's hashtags."""
    indexed: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _tag_problem(tag: str) -> Optional[str]:
    if tag == HASHTAG_SIGIL:
        return "empty tag"
    if len(tag) > MAX_HASHTAG_LENGTH:
        return f"longer than {MAX_HASHTAG_LENGTH} characters"
    return None


def _insert_ignoring_duplicates(dialect_name: str):
    if dialect_name == "postgresql":
        stmt = postgresql.insert(SnapHashtag)
    elif dialect_name == "sqlite":
        stmt = sqlite.insert(SnapHashtag)
    else:
        raise NotImplementedError(f"Unsupported database dialect: {dialect_name}")
    return stmt.on_conflict_do_nothing(index_elements=["snap_id", "hashtag"])


async def index_hashtags(
    db: AsyncSession,
    snap_id: uuid.UUID,
    raw_hashtags: Optional[str],
) -> HashtagIndexResult:
    """
    Insert one snap_hashtags row per parsed tag.

    Must run inside the transaction that inserted the snap: if that
    transaction rolls back, none of these rows survive.

    Args:
        db: Session holding the open upload transaction
        snap_id: Id of the (flushed, uncommitted) snap
        raw_hashtags: The raw hashtag field from the upload

    Returns:
        HashtagIndexResult with the stored tags and a warning per skipped tag.
    """
    result = HashtagIndexResult()
    tags = parse_hashtags(raw_hashtags)
    if not tags:
        return result

    stmt = _insert_ignoring_duplicates(db.get_bind().dialect.name)

    for tag in tags:
        problem = _tag_problem(tag)
        if problem:
            logger.warning("Skipping hashtag %r for snap %s: %s", tag, snap_id, problem)
            result.warnings.append(f"Skipped hashtag '{tag[:20]}' ({problem})")
            continue

        try:
            async with db.begin_nested():
                await db.execute(stmt.values(snap_id=snap_id, hashtag=tag))
            result.indexed.append(tag)
        except SQLAlchemyError as e:
            logger.warning("Failed to index hashtag %r for snap %s: %s", tag, snap_id, str(e))
            result.warnings.append(f"Skipped hashtag '{tag[:20]}' (could not be stored)")

    logger.debug("Indexed %d/%d hashtags for snap %s", len(result.indexed), len(tags), snap_id)
    return result
