"""HTTP接口测试"""

from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from comicforge.core.dependencies import (
    get_image_client,
    get_page_generation_pipeline,
    get_run_registry,
)
from comicforge.db.session import get_session
from comicforge.main import app
from comicforge.models import Comic
from comicforge.services.comic_generation import CancellationToken, PageRunRegistry

from conftest import FakeImageService


def panel(text):
    return {"scene_description": text}


@pytest.fixture
def service():
    return FakeImageService()


@pytest.fixture
async def client(session_factory, make_pipeline, make_client, service) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    registry = PageRunRegistry.get_instance()

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_page_generation_pipeline] = lambda: make_pipeline(service)
    app.dependency_overrides[get_image_client] = lambda: make_client(service)
    app.dependency_overrides[get_run_registry] = lambda: registry

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def test_health_check(client):
    response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_generate_pages_partial_success(client, seed_comic, service):
    comic_id, _ = await seed_comic({1: {1: {1: [panel("a")], 2: [], 3: [panel("c")]}}})
    service.responses = ["https://img.test/url1.png", "https://img.test/url3.png"]

    response = await client.post("/api/comic/generate/pages", json={"comicId": comic_id})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"] == {
        "imageUrls": ["https://img.test/url1.png", "", "https://img.test/url3.png"],
        "comicId": comic_id,
        "pageCount": 3,
        "successCount": 2,
        "errors": ["第2页: 没有分镜信息"],
    }


async def test_generate_pages_omits_errors_when_all_succeed(client, seed_comic):
    comic_id, _ = await seed_comic({1: {1: {1: [panel("a")]}}})

    response = await client.post("/api/comic/generate/pages", json={"comicId": comic_id})

    assert response.status_code == 200
    assert "errors" not in response.json()["data"]


async def test_generate_pages_total_failure(client, seed_comic, service):
    comic_id, _ = await seed_comic({1: {1: {1: [panel("a")]}}})
    service.responses = [500]

    response = await client.post("/api/comic/generate/pages", json={"comicId": comic_id})

    assert response.status_code == 500
    body = response.json()
    assert body == {
        "success": False,
        "error": "所有页面图片生成失败",
        "detail": "第1页: API调用失败 (500)",
        "data": {
            "imageUrls": [""],
            "comicId": comic_id,
            "pageCount": 1,
            "successCount": 0,
            "errors": ["第1页: API调用失败 (500)"],
        },
    }


async def test_generate_pages_requires_comic_id(client):
    response = await client.post("/api/comic/generate/pages", json={})

    assert response.status_code == 400
    assert response.json() == {"detail": "请提供comicId"}


async def test_generate_pages_unknown_comic(client):
    response = await client.post("/api/comic/generate/pages", json={"comicId": 777})

    assert response.status_code == 404
    assert response.json() == {"detail": "漫画不存在"}


async def test_generate_pages_without_pages(client, seed_comic):
    comic_id, _ = await seed_comic({1: {1: {}}})

    response = await client.post("/api/comic/generate/pages", json={"comicId": comic_id})

    assert response.status_code == 400
    assert response.json() == {"detail": "没有找到需要生成的页面"}


async def test_generate_pages_conflict_when_running(client, seed_comic):
    comic_id, _ = await seed_comic({1: {1: {1: [panel("a")]}}})
    PageRunRegistry.get_instance().register(comic_id, CancellationToken())

    response = await client.post("/api/comic/generate/pages", json={"comicId": comic_id})

    assert response.status_code == 409


async def test_run_is_unregistered_after_completion(client, seed_comic):
    comic_id, _ = await seed_comic({1: {1: {1: [panel("a")]}}})

    await client.post("/api/comic/generate/pages", json={"comicId": comic_id})

    assert not PageRunRegistry.get_instance().is_running(comic_id)


async def test_cancel_active_run(client):
    token = CancellationToken()
    PageRunRegistry.get_instance().register(5, token)

    response = await client.post("/api/comic/generate/pages/5/cancel")

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert token.is_cancelled


async def test_cancel_without_run(client):
    response = await client.post("/api/comic/generate/pages/5/cancel")

    assert response.status_code == 404


async def test_page_status_listing(client, seed_comic):
    comic_id, pages = await seed_comic({1: {1: {1: [panel("a")], 2: []}}})
    await client.post("/api/comic/generate/pages", json={"comicId": comic_id})

    response = await client.get(f"/api/comic/generate/pages/{comic_id}/status")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["comicId"] == comic_id
    assert data["running"] is False
    assert data["pages"] == [
        {
            "pageId": pages[(1, 1, 1)],
            "pageNumber": 1,
            "volumeNumber": 1,
            "episodeNumber": 1,
            "status": "published",
            "imageUrl": "https://img.test/1.png",
        },
        {
            "pageId": pages[(1, 1, 2)],
            "pageNumber": 2,
            "volumeNumber": 1,
            "episodeNumber": 1,
            "status": "failed",
            "imageUrl": None,
        },
    ]


async def test_generate_cover_updates_comic(client, seed_comic, session_factory, service):
    comic_id, _ = await seed_comic({})
    service.responses = ["https://img.test/cover.png"]

    response = await client.post(
        "/api/comic/generate/cover",
        json={"title": "星之旅人", "description": "少年的星海冒险", "style": "水彩", "comicId": comic_id},
    )

    assert response.status_code == 200
    body = response.json()
    assert body == {
        "success": True,
        "data": {
            "coverUrl": "https://img.test/cover.png",
            "comicId": comic_id,
            "prompt": "星之旅人，少年的星海冒险，漫画封面，精美插画，水彩风格，高质量，详细绘制",
        },
    }
    async with session_factory() as session:
        comic = await session.get(Comic, comic_id)
        assert comic.cover_image == "https://img.test/cover.png"


async def test_generate_cover_requires_title_and_description(client):
    response = await client.post("/api/comic/generate/cover", json={"title": "只有标题"})

    assert response.status_code == 400
    assert response.json() == {"detail": "请提供标题和描述"}


async def test_generate_cover_service_failure(client, service):
    service.responses = [400]

    response = await client.post(
        "/api/comic/generate/cover",
        json={"title": "标题", "description": "描述"},
    )

    assert response.status_code == 503
    assert response.json() == {"detail": "封面生成失败"}
