"""
漫画页面图片生成流水线

对一部漫画按阅读顺序逐页执行：组装提示词 → 调用图片生成 → 写入页面状态。
单页失败只记录到 errors，不影响其他页面；只有漫画不存在或没有任何页面时整体失败。

并发模型：
- max_concurrent=1（默认）时严格串行，页面按顺序一页一页生成
- max_concurrent>1 时最多同时处理N页，页面仍按顺序启动，结果按下标回填
- 外部调用之间的间隔由 AdaptiveRateLimiter 控制
- 每启动一页前检查取消令牌，取消后在途页面照常完成，后续页面不再启动
"""

import asyncio
import logging
from typing import List, Optional, Tuple

from ...core.constants import PipelineMessages
from ...exceptions import NoPagesError
from .cancellation import CancellationToken
from .client import ImageGenerationClient
from .hierarchy_reader import ComicHierarchyReader
from .models import PageGenerationSummary, PageOutcome, PageSnapshot
from .prompt_composer import compose_page_prompt
from .rate_limiter import AdaptiveRateLimiter
from .status_tracker import PageStatusTracker

logger = logging.getLogger(__name__)


def page_error(position: int, message: str) -> str:
    """带页面位置（从1开始）的错误描述"""
    return f"第{position}页: {message}"


class PageGenerationPipeline:
    """页面图片生成流水线"""

    def __init__(
        self,
        reader: ComicHierarchyReader,
        client: ImageGenerationClient,
        tracker: PageStatusTracker,
        rate_limiter: AdaptiveRateLimiter,
        max_concurrent: int = 1,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent 必须大于0")
        self.reader = reader
        self.client = client
        self.tracker = tracker
        self.rate_limiter = rate_limiter
        self.max_concurrent = max_concurrent

    async def run(
        self,
        comic_id: int,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PageGenerationSummary:
        """
        为漫画的所有页面生成图片

        Args:
            comic_id: 漫画ID
            cancel_token: 取消令牌（可选）

        Returns:
            PageGenerationSummary: image_urls 与页面阅读顺序一一对应，失败位置为空字符串

        Raises:
            ResourceNotFoundError: 漫画不存在
            NoPagesError: 漫画没有任何页面
        """
        hierarchy = await self.reader.load(comic_id)
        if not hierarchy.pages:
            raise NoPagesError(comic_id)

        pages = hierarchy.pages
        total = len(pages)
        logger.info(
            "开始为漫画%d生成%d张页面图片: style=%s max_concurrent=%d",
            comic_id, total, hierarchy.style, self.max_concurrent,
        )

        image_urls: List[str] = [""] * total
        errors: List[Optional[str]] = [None] * total
        cancelled = False

        slots = asyncio.Semaphore(self.max_concurrent)
        tasks: List[asyncio.Task] = []

        try:
            for index, page in enumerate(pages):
                position = index + 1

                if cancel_token is not None and cancel_token.is_cancelled:
                    cancelled = True
                elif page.has_panels:
                    await slots.acquire()
                    # 等待槽位期间可能已被取消
                    if cancel_token is not None and cancel_token.is_cancelled:
                        slots.release()
                        cancelled = True
                    else:
                        tasks.append(asyncio.create_task(
                            self._run_page(index, page, hierarchy.style, slots, image_urls, errors)
                        ))
                        continue
                else:
                    errors[index] = page_error(position, PipelineMessages.NO_PANELS)
                    logger.warning("漫画%d第%d页没有分镜，跳过生成", comic_id, position)
                    await self._mark_page_failed(position, page)
                    continue

                for rest in range(index, total):
                    errors[rest] = page_error(rest + 1, PipelineMessages.CANCELLED)
                logger.info(
                    "漫画%d页面图片生成已取消 (%s)，剩余%d页未启动",
                    comic_id, cancel_token.reason if cancel_token else "", total - index,
                )
                break

            if tasks:
                await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        summary = PageGenerationSummary(
            comic_id=comic_id,
            image_urls=image_urls,
            errors=[error for error in errors if error],
            cancelled=cancelled,
        )
        logger.info(
            "漫画%d页面图片生成完成: %d/%d 成功",
            comic_id, summary.success_count, summary.page_count,
        )
        return summary

    async def _mark_page_failed(self, position: int, page: PageSnapshot) -> None:
        """写入 failed 状态；写入本身出错只记日志，不影响其余页面"""
        try:
            await self.tracker.mark_failed(page.page_id)
        except Exception:
            logger.warning(
                "第%d页 (page_id=%d) 失败状态写入异常，继续处理后续页面",
                position, page.page_id, exc_info=True,
            )

    async def _run_page(
        self,
        index: int,
        page: PageSnapshot,
        style: str,
        slots: asyncio.Semaphore,
        image_urls: List[str],
        errors: List[Optional[str]],
    ) -> None:
        """在槽位内处理一页，结果写回对应下标；槽位由调用方获取，这里负责释放"""
        position = index + 1
        try:
            try:
                image_url, error = await self._generate_page(position, page, style)
            except Exception as exc:
                logger.exception("第%d页 (page_id=%d) 生成过程出现未预期异常", position, page.page_id)
                image_url, error = "", page_error(position, str(exc) or PipelineMessages.UNKNOWN_ERROR)
                await self._mark_page_failed(position, page)
        finally:
            slots.release()

        image_urls[index] = image_url
        errors[index] = error

    async def _generate_page(
        self,
        position: int,
        page: PageSnapshot,
        style: str,
    ) -> Tuple[str, Optional[str]]:
        await self.tracker.mark_generating(page.page_id)
        prompt = compose_page_prompt(page, style)
        logger.debug("第%d页提示词: %s", position, prompt)

        async with self.rate_limiter.slot():
            outcome = await self.client.generate(prompt)
        self.rate_limiter.record_result(outcome.throttled)

        if outcome.success:
            # 最终状态写入失败时图片依然有效，该页仍计为成功
            await self.tracker.record_outcome(page.page_id, PageOutcome.published(outcome.image_url))
            logger.info(
                "第%d页图片生成成功 (page_id=%d, attempts=%d)",
                position, page.page_id, outcome.attempts,
            )
            return outcome.image_url, None

        await self.tracker.record_outcome(page.page_id, PageOutcome.failed())
        logger.warning(
            "第%d页图片生成失败 (page_id=%d, attempts=%d): %s",
            position, page.page_id, outcome.attempts, outcome.message,
        )
        return "", page_error(position, outcome.message)
