"""页面状态写入测试：状态转换、幂等与尽力而为"""

import pytest
from sqlalchemy.exc import OperationalError

from comicforge.core.constants import PageStatus
from comicforge.repositories.comic_repository import ComicPageRepository
from comicforge.services.comic_generation import PageOutcome, PageStatusTracker


PANEL = {"scene_description": "一格"}


async def test_generating_then_published(seed_comic, session_factory, load_page):
    _, pages = await seed_comic({1: {1: {1: [PANEL]}}})
    page_id = pages[(1, 1, 1)]
    tracker = PageStatusTracker(session_factory)

    assert await tracker.mark_generating(page_id)
    page = await load_page(page_id)
    assert page.status == PageStatus.GENERATING.value
    assert page.image_url is None

    assert await tracker.record_outcome(page_id, PageOutcome.published("https://img.test/1.png"))
    page = await load_page(page_id)
    assert page.status == PageStatus.PUBLISHED.value
    assert page.image_url == "https://img.test/1.png"


async def test_record_outcome_is_idempotent(seed_comic, session_factory, load_page):
    _, pages = await seed_comic({1: {1: {1: [PANEL]}}})
    page_id = pages[(1, 1, 1)]
    tracker = PageStatusTracker(session_factory)
    await tracker.mark_generating(page_id)

    outcome = PageOutcome.published("https://img.test/same.png")
    assert await tracker.record_outcome(page_id, outcome)
    first = await load_page(page_id)

    assert await tracker.record_outcome(page_id, outcome)
    second = await load_page(page_id)

    assert second.status == first.status
    assert second.image_url == first.image_url
    assert second.updated_at == first.updated_at


async def test_regeneration_clears_image_url(seed_comic, session_factory, load_page):
    _, pages = await seed_comic({1: {1: {1: [PANEL]}}})
    page_id = pages[(1, 1, 1)]
    tracker = PageStatusTracker(session_factory)
    await tracker.mark_generating(page_id)
    await tracker.record_outcome(page_id, PageOutcome.published("https://img.test/old.png"))

    await tracker.mark_generating(page_id)
    page = await load_page(page_id)
    assert page.status == PageStatus.GENERATING.value
    assert page.image_url is None

    await tracker.record_outcome(page_id, PageOutcome.failed())
    page = await load_page(page_id)
    assert page.status == PageStatus.FAILED.value
    assert page.image_url is None


async def test_pending_can_fail_directly(seed_comic, session_factory, load_page):
    _, pages = await seed_comic({1: {1: {1: []}}})
    page_id = pages[(1, 1, 1)]

    assert await PageStatusTracker(session_factory).mark_failed(page_id)

    page = await load_page(page_id)
    assert page.status == PageStatus.FAILED.value


async def test_publish_lands_when_mark_generating_was_lost(seed_comic, session_factory, load_page, monkeypatch):
    _, pages = await seed_comic({1: {1: {1: [PANEL]}}})
    page_id = pages[(1, 1, 1)]
    original_update = ComicPageRepository.update_status
    calls = []

    async def flaky_update(self, page, status, image_url):
        calls.append(status)
        if len(calls) == 1:
            raise OperationalError("UPDATE comic_pages", {}, Exception("database is locked"))
        return await original_update(self, page, status, image_url)

    monkeypatch.setattr(ComicPageRepository, "update_status", flaky_update)
    tracker = PageStatusTracker(session_factory)

    assert await tracker.mark_generating(page_id) is False
    assert (await load_page(page_id)).status == PageStatus.PENDING.value

    assert await tracker.record_outcome(page_id, PageOutcome.published("https://img.test/x.png"))
    page = await load_page(page_id)
    assert page.status == PageStatus.PUBLISHED.value
    assert page.image_url == "https://img.test/x.png"


async def test_failed_page_can_be_published_directly(seed_comic, session_factory, load_page):
    _, pages = await seed_comic({1: {1: {1: [PANEL]}}})
    page_id = pages[(1, 1, 1)]
    tracker = PageStatusTracker(session_factory)
    await tracker.mark_failed(page_id)

    assert await tracker.record_outcome(page_id, PageOutcome.published("https://img.test/again.png"))

    page = await load_page(page_id)
    assert (page.status, page.image_url) == (PageStatus.PUBLISHED.value, "https://img.test/again.png")


async def test_status_never_returns_to_pending(seed_comic, session_factory, load_page):
    _, pages = await seed_comic({1: {1: {1: [PANEL]}}})
    page_id = pages[(1, 1, 1)]
    tracker = PageStatusTracker(session_factory)
    await tracker.record_outcome(page_id, PageOutcome.published("https://img.test/x.png"))

    # pending 不是可写入的目标状态
    assert not await tracker._write(page_id, PageStatus.PENDING, None)

    page = await load_page(page_id)
    assert (page.status, page.image_url) == (PageStatus.PUBLISHED.value, "https://img.test/x.png")


async def test_missing_page_returns_false(session_factory):
    tracker = PageStatusTracker(session_factory)

    assert not await tracker.mark_generating(9999)


async def test_persistence_error_returns_false(seed_comic, session_factory, monkeypatch):
    _, pages = await seed_comic({1: {1: {1: [PANEL]}}})
    page_id = pages[(1, 1, 1)]

    async def broken_update(self, page, status, image_url):
        raise OperationalError("UPDATE comic_pages", {}, Exception("database is locked"))

    monkeypatch.setattr(ComicPageRepository, "update_status", broken_update)

    assert await PageStatusTracker(session_factory).mark_generating(page_id) is False


def test_page_outcome_validation():
    with pytest.raises(ValueError):
        PageOutcome(status=PageStatus.PUBLISHED)
    with pytest.raises(ValueError):
        PageOutcome(status=PageStatus.FAILED, image_url="https://img.test/x.png")
    with pytest.raises(ValueError):
        PageOutcome(status=PageStatus.GENERATING)
