"""End-to-end tests for the platform facade."""

import random
from unittest.mock import AsyncMock

import pytest
from pytest_httpx import HTTPXMock

from elementfeed import Platform, PlatformConfig
from elementfeed.analysis import AnalysisClient, CostMonitor
from elementfeed.errors import ElementFeedError
from elementfeed.models import (
    AuditAction,
    Category,
    ContentItem,
    ContentType,
    Decision,
    ModerationStatus,
    PublishStatus,
    QueuePriority,
)

BASE_URL = "https://api.test/v1"
CHAT_URL = f"{BASE_URL}/chat/completions"
MODERATION_URL = f"{BASE_URL}/moderations"


def create_config(**kwargs) -> PlatformConfig:
    """Create test config with fast retries and no early background runs."""
    defaults = {
        "job_retry_base_delay": 0.0,
        "job_retry_max_delay": 0.0,
        "trending_initial_delay": 60.0,
        "shutdown_grace_period": 1.0,
    }
    defaults.update(kwargs)
    return PlatformConfig(**defaults)


def create_client() -> AnalysisClient:
    return AnalysisClient(
        "sk-test",
        BASE_URL,
        cost_monitor=CostMonitor(limit_usd=50),
        max_retries=0,
    )


def chat_response(content: str) -> dict:
    return {
        "choices": [{"message": {"content": content}}],
        "usage": {"prompt_tokens": 200, "completion_tokens": 50},
    }


class TestPostPipeline:
    @pytest.mark.asyncio
    async def test_negative_post_without_api_key(self):
        async with Platform(create_config(), rng=random.Random(0)) as platform:
            ack = await platform.create_post(
                "user-1", "I hate everything, it's hopeless"
            )

            assert ack.accepted is True
            assert ack.publish_status == PublishStatus.UNDER_REVIEW
            assert ack.content_type == ContentType.POST

            result = await ack.wait(timeout=5)
            outcome = result.unwrap()

            post = await platform.store.get_content(ContentType.POST, ack.content_id)

        assert outcome.status == ModerationStatus.AUTO_APPROVED
        assert post.positivity_score == 34
        assert post.publish_status == PublishStatus.PUBLISHED
        assert post.category is not None
        assert post.analysis_result["confidence"] == 0.3
        assert post.safety_assessment["is_safe"] is True

        audit = await platform.audit.entries_for(ContentType.POST, ack.content_id)
        assert [e.action for e in audit] == [AuditAction.UPLOAD, AuditAction.PUBLISH]

    @pytest.mark.asyncio
    async def test_published_post_reaches_feed(self):
        async with Platform(create_config(), rng=random.Random(0)) as platform:
            ack = await platform.create_post("user-1", "Calm ocean flow and peace")
            await ack.wait(timeout=5)

            feed = await platform.get_feed(Category.WATER)
            await platform.record_view("viewer-1", ContentType.POST, ack.content_id)
            random_item = await platform.get_random_content()

        assert [item.id for item in feed] == [ack.content_id]
        assert feed[0].positivity_score == 60
        assert random_item.id == ack.content_id
        post = await platform.store.get_content(ContentType.POST, ack.content_id)
        assert post.view_count == 1

    @pytest.mark.asyncio
    async def test_safety_outage_routes_to_review(self, httpx_mock: HTTPXMock):
        httpx_mock.add_response(url=CHAT_URL, status_code=500)
        httpx_mock.add_response(url=MODERATION_URL, status_code=500)
        httpx_mock.add_response(url=CHAT_URL, status_code=500)
        client = create_client()

        try:
            async with Platform(create_config(), client=client) as platform:
                ack = await platform.create_post("user-1", "river flow")
                outcome = (await ack.wait(timeout=5)).unwrap()
                queue = await platform.get_moderation_queue()
                metrics = platform.error_metrics()
        finally:
            await client.close()

        assert outcome.status == ModerationStatus.REQUIRES_REVIEW
        assert outcome.category == Category.WATER
        assert [(e.priority, e.flagged_reason) for e in queue] == [
            (QueuePriority.HIGH, "api_error")
        ]
        assert metrics["by_category"] == {"ai-analysis": 1}

    @pytest.mark.asyncio
    async def test_malformed_completions_use_fallbacks(self, httpx_mock: HTTPXMock):
        httpx_mock.add_response(
            url=CHAT_URL,
            json={
                "choices": [{"message": {"content": 123}}],
                "usage": {"prompt_tokens": 200, "completion_tokens": 50},
            },
        )
        httpx_mock.add_response(
            url=MODERATION_URL,
            json={"results": [{"flagged": False, "categories": {}}]},
        )
        httpx_mock.add_response(
            url=CHAT_URL,
            json={
                "choices": [{"message": {"content": '{"score": 80}'}}],
                "usage": {"prompt_tokens": None, "completion_tokens": None},
            },
        )
        client = create_client()

        try:
            async with Platform(create_config(), client=client) as platform:
                ack = await platform.create_post("user-1", "river flow")
                outcome = (await ack.wait(timeout=5)).unwrap()
                queue = await platform.get_moderation_queue()
                stats = platform.cost_stats()
        finally:
            await client.close()

        assert outcome.status == ModerationStatus.AUTO_APPROVED
        assert outcome.error is None
        assert outcome.category == Category.WATER
        assert outcome.positivity_score == 80
        assert queue == []
        assert stats.request_count == 2


class TestVideoPipeline:
    @pytest.mark.asyncio
    async def test_high_risk_video_rejected(self, httpx_mock: HTTPXMock):
        httpx_mock.add_response(
            url=CHAT_URL,
            json=chat_response(
                '{"elementType": "Fire", "confidence": 0.9, "reasoning": "intense"}'
            ),
        )
        httpx_mock.add_response(
            url=MODERATION_URL,
            json={
                "results": [
                    {
                        "flagged": True,
                        "categories": {"violence/graphic": True, "hate": False},
                    }
                ]
            },
        )
        httpx_mock.add_response(url=CHAT_URL, json=chat_response('{"score": 20}'))
        client = create_client()

        try:
            async with Platform(create_config(), client=client) as platform:
                ack = await platform.create_video(
                    "user-2", "Street fight", "Raw footage", "https://cdn.test/f.mp4"
                )
                outcome = (await ack.wait(timeout=5)).unwrap()
                queue = await platform.get_moderation_queue()
                video = await platform.store.get_content(
                    ContentType.VIDEO, ack.content_id
                )
                audit = await platform.audit.entries_for(
                    ContentType.VIDEO, ack.content_id
                )
                stats = platform.cost_stats()
        finally:
            await client.close()

        assert outcome.status == ModerationStatus.REJECTED
        assert video.publish_status == PublishStatus.FLAGGED
        assert video.category == Category.FIRE
        assert video.positivity_score == 20
        assert video.safety_assessment["flags"] == ["violence/graphic"]

        assert len(queue) == 1
        assert queue[0].priority == QueuePriority.URGENT
        assert queue[0].flagged_reason == "violence/graphic"

        moderate = [e for e in audit if e.action == AuditAction.MODERATE]
        assert len(moderate) == 1
        assert moderate[0].changes["moderationStatus"] == "rejected"

        assert stats.request_count == 2
        assert set(stats.by_operation) == {"classify_video", "positivity"}

    @pytest.mark.asyncio
    async def test_moderator_resolution_is_idempotent(self):
        async with Platform(create_config(), rng=random.Random(0)) as platform:
            # no keywords: random category at confidence 0.3, so review
            ack = await platform.create_video("user-3", "Untitled", "clip")
            outcome = (await ack.wait(timeout=5)).unwrap()
            assert outcome.status == ModerationStatus.REQUIRES_REVIEW
            assert len(await platform.get_moderation_queue()) == 1

            first = await platform.resolve(
                ContentType.VIDEO, ack.content_id, Decision.APPROVED, "ok", "mod-1"
            )
            second = await platform.resolve(
                ContentType.VIDEO, ack.content_id, Decision.APPROVED, "ok", "mod-1"
            )

            video = await platform.store.get_content(ContentType.VIDEO, ack.content_id)
            queue = await platform.get_moderation_queue()
            publishes = await platform.audit.list_entries(AuditAction.PUBLISH)

        assert (first, second) == (True, False)
        assert video.publish_status == PublishStatus.PUBLISHED
        assert video.moderated_by == "mod-1"
        assert queue == []
        assert len(publishes) == 1


class TestAnalytics:
    @pytest.mark.asyncio
    async def test_overview(self):
        platform = Platform(create_config())
        store = platform.store
        for category, status, views in [
            (Category.WATER, ModerationStatus.AUTO_APPROVED, 10),
            (Category.WATER, ModerationStatus.AUTO_APPROVED, 5),
            (Category.FIRE, ModerationStatus.REQUIRES_REVIEW, 0),
            (Category.FIRE, ModerationStatus.REJECTED, 0),
        ]:
            await store.save_content(
                ContentItem(
                    content_type=ContentType.VIDEO,
                    creator_id="u",
                    title="v",
                    category=category,
                    moderation_status=status,
                    view_count=views,
                )
            )
        await store.save_content(
            ContentItem(
                content_type=ContentType.POST,
                creator_id="u",
                body="p",
                category=Category.AIR,
                moderation_status=ModerationStatus.AUTO_APPROVED,
                view_count=100,
            )
        )
        await platform.run_trending()

        overview = await platform.get_analytics_overview()

        assert overview.total_videos == 4
        assert overview.total_posts == 1
        assert overview.approval_rate == 50.0
        assert overview.safety_flag_rate == 25.0
        assert overview.category_distribution == {"Water": 2, "Fire": 2}
        assert overview.trending_topics == ["Air", "Water"]

    @pytest.mark.asyncio
    async def test_empty_overview(self):
        overview = await Platform(create_config()).get_analytics_overview()

        assert overview.total_videos == 0
        assert overview.approval_rate == 0.0
        assert overview.trending_topics == []


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_create_after_stop_refused_without_storing(self):
        platform = Platform(create_config())
        await platform.start()
        await platform.stop()

        with pytest.raises(ElementFeedError, match="shutting down"):
            await platform.create_post("user-1", "calm river")
        with pytest.raises(ElementFeedError, match="shutting down"):
            await platform.create_video("user-1", "Sunrise")

        assert await platform.store.list_content() == []
        assert await platform.audit.list_entries() == []

    @pytest.mark.asyncio
    async def test_run_until_shutdown_warns_without_api_key(self, caplog):
        platform = Platform(create_config())
        platform.manager.run_until_shutdown = AsyncMock()

        await platform.run_until_shutdown()

        platform.manager.run_until_shutdown.assert_awaited_once()
        assert "Analysis API key not set" in caplog.text
