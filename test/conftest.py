"""
测试公共夹具

- 每个测试使用 tmp_path 下的独立 SQLite 文件库
- 图片生成服务用 httpx.MockTransport 模拟
- 重置进程内的运行登记表单例
"""

import json
import os

# 必须在导入 comicforge 之前设置，避免测试读取开发环境的 .env
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DASHSCOPE_API_KEY", "test-key")
os.environ.setdefault("PAGE_GENERATION_INTERVAL", "0")

from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from comicforge.db.base import Base
from comicforge.db.session import build_engine
from comicforge.models import Comic, ComicEpisode, ComicPage, ComicPanel, ComicVolume
from comicforge.services.comic_generation import (
    AdaptiveRateLimiter,
    ComicHierarchyReader,
    ImageGenerationClient,
    PageGenerationPipeline,
    PageRunRegistry,
    PageStatusTracker,
)


TEST_API_URL = "https://dashscope.test/api/v1/services/aigc/multimodal-generation/generation"

# {卷序号: {话序号: {页序号: [分镜字段, ...]}}}
ComicStructure = Dict[int, Dict[int, Dict[int, List[Dict[str, Any]]]]]


def image_response(url: str) -> Dict[str, Any]:
    """通义万象成功响应体"""
    return {
        "output": {
            "choices": [
                {"message": {"role": "assistant", "content": [{"image": url}]}},
            ],
        },
        "request_id": "test-request",
    }


@pytest.fixture(autouse=True)
def reset_singletons():
    PageRunRegistry.reset_instance()
    yield
    PageRunRegistry.reset_instance()


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'comicforge_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def seed_comic(session_factory):
    """
    按结构写入一部漫画，返回 (漫画ID, {(卷, 话, 页): 页面ID})

    字典的插入顺序就是写入顺序，可用来构造与序号不一致的主键顺序。
    """

    async def _seed(
        structure: ComicStructure,
        style: Optional[str] = "anime",
        title: str = "测试漫画",
        page_layout: Optional[str] = None,
    ) -> Tuple[int, Dict[Tuple[int, int, int], int]]:
        async with session_factory() as session:
            comic = Comic(title=title, description="测试用漫画", style=style)
            session.add(comic)
            await session.flush()

            pages: Dict[Tuple[int, int, int], ComicPage] = {}
            for volume_number, episodes in structure.items():
                volume = ComicVolume(comic_id=comic.id, volume_number=volume_number, title=f"第{volume_number}卷")
                session.add(volume)
                await session.flush()

                for episode_number, page_map in episodes.items():
                    episode = ComicEpisode(
                        comic_id=comic.id,
                        volume_id=volume.id,
                        episode_number=episode_number,
                        title=f"第{episode_number}话",
                    )
                    session.add(episode)
                    await session.flush()

                    for page_number, panels in page_map.items():
                        page = ComicPage(
                            episode_id=episode.id,
                            page_number=page_number,
                            page_layout=page_layout,
                        )
                        session.add(page)
                        await session.flush()
                        pages[(volume_number, episode_number, page_number)] = page

                        for panel_number, fields in enumerate(panels, start=1):
                            values = {"panel_number": panel_number, **fields}
                            session.add(ComicPanel(page_id=page.id, **values))

            await session.commit()
            return comic.id, {key: page.id for key, page in pages.items()}

    return _seed


@pytest.fixture
def load_page(session_factory):
    """重新读取页面当前持久化的状态"""

    async def _load(page_id: int) -> ComicPage:
        async with session_factory() as session:
            return await session.get(ComicPage, page_id)

    return _load


class FakeImageService:
    """
    模拟图片生成服务

    responses 中的每一项依次作为一次请求的响应：
    - str: 成功，返回该图片URL
    - int: 返回该HTTP状态码
    - Exception: 抛出该异常
    - httpx.Response: 原样返回
    """

    def __init__(self, responses: Optional[List[Any]] = None, default: Any = None):
        self.responses = list(responses or [])
        self.default = default
        self.requests: List[httpx.Request] = []

    @property
    def prompts(self) -> List[str]:
        return [
            json.loads(request.content)["input"]["messages"][0]["content"][0]["text"]
            for request in self.requests
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if self.responses else self.default
        if response is None:
            response = f"https://img.test/{len(self.requests)}.png"
        if isinstance(response, Exception):
            raise response
        if isinstance(response, httpx.Response):
            return response
        if isinstance(response, int):
            return httpx.Response(response, json={"code": "Error", "message": "mock failure"})
        return httpx.Response(200, json=image_response(response))


@pytest.fixture
async def make_client():
    """创建连接到模拟服务的 ImageGenerationClient"""
    opened: List[httpx.AsyncClient] = []

    def _make(service: FakeImageService, **overrides: Any) -> ImageGenerationClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(service.handler))
        opened.append(http_client)
        options: Dict[str, Any] = dict(
            api_key="test-key",
            base_url=TEST_API_URL,
            model="wan2.6-t2i",
            negative_prompt="模糊，低质量，变形，扭曲，文字，水印",
            size="1280*1280",
            max_attempts=1,
            backoff_base=0.0,
            http_client=http_client,
        )
        options.update(overrides)
        return ImageGenerationClient(**options)

    yield _make

    for http_client in opened:
        await http_client.aclose()


@pytest.fixture
def make_pipeline(session, session_factory, make_client):
    """组装一条使用测试数据库与模拟服务的流水线"""

    def _make(
        service: FakeImageService,
        max_concurrent: int = 1,
        rate_limiter: Optional[AdaptiveRateLimiter] = None,
        tracker: Optional[PageStatusTracker] = None,
        **client_overrides: Any,
    ) -> PageGenerationPipeline:
        return PageGenerationPipeline(
            reader=ComicHierarchyReader(session),
            client=make_client(service, **client_overrides),
            tracker=tracker or PageStatusTracker(session_factory),
            rate_limiter=rate_limiter or AdaptiveRateLimiter(min_interval=0.0, max_interval=0.0),
            max_concurrent=max_concurrent,
        )

    return _make


@pytest.fixture
def fake_service_factory() -> Callable[..., FakeImageService]:
    return FakeImageService
