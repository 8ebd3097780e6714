"""
SnapStream Backend — Feed Assembler Tests
===========================================

What:  Ordering, pagination arithmetic, clamping, expiry filtering and the
       hashtag fallback.

Timestamps come back from SQLite without tzinfo, so assertions compare ids.
"""

from datetime import datetime, timedelta, timezone

import pytest

from snapstream.services.feed_service import clamp_limit, clamp_page, feed_service


def _ids(feed):
    return [snap.id for snap in feed.snaps]


class TestClamping:

    @pytest.mark.parametrize("page, expected", [(-5, 1), (0, 1), (1, 1), (7, 7)])
    def test_page_floor(self, page, expected):
        assert clamp_page(page) == expected

    @pytest.mark.parametrize("limit, expected", [(-1, 1), (0, 1), (10, 10), (50, 50), (500, 50)])
    def test_limit_bounds(self, limit, expected):
        assert clamp_limit(limit) == expected


class TestGetFeed:

    @pytest.mark.asyncio
    async def test_empty_corpus(self, database):
        async with database.session() as session:
            feed = await feed_service.get_feed(session)

        assert feed.snaps == []
        assert feed.pagination.model_dump() == {
            "page": 1, "limit": 10, "total_items": 0, "total_pages": 0,
        }

    @pytest.mark.asyncio
    async def test_newest_first(self, database, make_user, make_snap):
        owner = await make_user()
        now = datetime.now(timezone.utc)
        old = await make_snap(owner, created_at=now - timedelta(hours=2))
        mid = await make_snap(owner, created_at=now - timedelta(hours=1))
        new = await make_snap(owner, created_at=now)

        async with database.session() as session:
            feed = await feed_service.get_feed(session)

        assert _ids(feed) == [new.id, mid.id, old.id]
        assert feed.snaps[0].username == "alice"

    @pytest.mark.asyncio
    async def test_equal_timestamps_ordered_by_id(self, database, make_user, make_snap):
        """Ties on created_at break on id, descending, so paging is deterministic."""
        owner = await make_user()
        same = datetime.now(timezone.utc)
        snaps = [await make_snap(owner, created_at=same) for _ in range(5)]
        expected = sorted((s.id for s in snaps), key=lambda i: i.hex, reverse=True)

        async with database.session() as session:
            first = await feed_service.get_feed(session, page=1, page_size=2)
            second = await feed_service.get_feed(session, page=2, page_size=2)
            third = await feed_service.get_feed(session, page=3, page_size=2)
            again = await feed_service.get_feed(session, page=1, page_size=5)

        assert _ids(first) + _ids(second) + _ids(third) == expected
        assert _ids(again) == expected

    @pytest.mark.asyncio
    async def test_pagination_of_25_snaps(self, database, make_user, make_snap):
        owner = await make_user()
        now = datetime.now(timezone.utc)
        for i in range(25):
            await make_snap(owner, created_at=now - timedelta(minutes=i))

        async with database.session() as session:
            page1 = await feed_service.get_feed(session, page=1, page_size=10)
            page3 = await feed_service.get_feed(session, page=3, page_size=10)
            page4 = await feed_service.get_feed(session, page=4, page_size=10)

        assert len(page1.snaps) == 10
        assert len(page3.snaps) == 5
        assert page3.pagination.total_items == 25
        assert page3.pagination.total_pages == 3
        assert page4.snaps == []
        assert page4.pagination.total_pages == 3

    @pytest.mark.asyncio
    async def test_out_of_range_arguments_clamped(self, database, make_user, make_snap):
        owner = await make_user()
        await make_snap(owner)

        async with database.session() as session:
            feed = await feed_service.get_feed(session, page=0, page_size=1000)

        assert feed.pagination.page == 1
        assert feed.pagination.limit == 50
        assert len(feed.snaps) == 1

    @pytest.mark.asyncio
    async def test_expired_and_private_snaps_excluded(self, database, make_user, make_snap):
        owner = await make_user()
        now = datetime.now(timezone.utc)
        live = await make_snap(owner, created_at=now)
        await make_snap(owner, created_at=now - timedelta(hours=13))
        await make_snap(owner, created_at=now, is_public=False)

        async with database.session() as session:
            feed = await feed_service.get_feed(session)

        assert _ids(feed) == [live.id]
        assert feed.pagination.total_items == 1

    @pytest.mark.asyncio
    async def test_hashtags_from_rows_and_fallback(self, database, make_user, make_snap):
        owner = await make_user()
        now = datetime.now(timezone.utc)
        with_rows = await make_snap(
            owner, created_at=now, hashtags="#x #y", tag_rows=["#y", "#x"]
        )
        without_rows = await make_snap(
            owner, created_at=now - timedelta(minutes=1), hashtags="#raw,#tags"
        )
        no_tags = await make_snap(owner, created_at=now - timedelta(minutes=2))

        async with database.session() as session:
            feed = await feed_service.get_feed(session)

        by_id = {snap.id: snap for snap in feed.snaps}
        assert by_id[with_rows.id].hashtag_list == ["#x", "#y"]
        assert by_id[without_rows.id].hashtag_list == ["#raw", "#tags"]
        assert by_id[no_tags.id].hashtag_list == []

    @pytest.mark.asyncio
    async def test_fallback_matches_what_indexing_would_store(
        self, database, make_user, make_snap
    ):
        """A bad tag shows the same whether or not a good tag sat beside it."""
        owner = await make_user()
        now = datetime.now(timezone.utc)
        bad_only = await make_snap(owner, created_at=now, hashtags="#")
        mixed = await make_snap(
            owner, created_at=now - timedelta(minutes=1), hashtags="# #ok", tag_rows=["#ok"]
        )

        async with database.session() as session:
            feed = await feed_service.get_feed(session)

        by_id = {snap.id: snap for snap in feed.snaps}
        assert by_id[bad_only.id].hashtag_list == []
        assert by_id[mixed.id].hashtag_list == ["#ok"]

    @pytest.mark.asyncio
    async def test_image_blob_not_in_items(self, database, make_user, make_snap):
        owner = await make_user()
        snap = await make_snap(owner)

        async with database.session() as session:
            feed = await feed_service.get_feed(session)

        item = feed.snaps[0].model_dump()
        assert "image_data" not in item
        assert item["image_url"] == f"/api/snaps/image/{snap.id}"
