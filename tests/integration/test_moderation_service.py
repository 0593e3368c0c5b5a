"""Integration tests for moderation service operations."""

import uuid

import pytest

from backend.forge.db.models import Diagram, Visibility
from backend.forge.moderation.engine import ModerationConfig
from backend.forge.moderation.service import ModerationService
from tests.conftest import OWNER_ID

ADMIN_ID = uuid.UUID("00000000-0000-0000-0000-00000000000a")
OTHER_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000003")


class RecordingScheduler:
    def __init__(self) -> None:
        self.scheduled: list[uuid.UUID] = []

    def schedule_moderation(self, diagram_id: uuid.UUID) -> None:
        self.scheduled.append(diagram_id)


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


class TestVisibility:
    @pytest.mark.asyncio
    async def test_making_public_queues_moderation(
        self, session_factory, make_diagram, scheduler
    ) -> None:
        diagram_id = await make_diagram(visibility="private")

        async with session_factory() as session:
            service = ModerationService(session, ModerationConfig(), scheduler)
            diagram = await service.change_visibility(
                diagram_id, Visibility.PUBLIC, user_id=OWNER_ID
            )

        assert diagram is not None
        assert diagram.visibility == "public"
        assert scheduler.scheduled == [diagram_id]

    @pytest.mark.asyncio
    async def test_making_private_does_not_queue(
        self, session_factory, make_diagram, scheduler
    ) -> None:
        diagram_id = await make_diagram(visibility="public")

        async with session_factory() as session:
            service = ModerationService(session, ModerationConfig(), scheduler)
            diagram = await service.change_visibility(
                diagram_id, Visibility.PRIVATE, user_id=OWNER_ID
            )

        assert diagram.visibility == "private"
        assert scheduler.scheduled == []

    @pytest.mark.asyncio
    async def test_disabled_moderation_does_not_queue(
        self, session_factory, make_diagram, scheduler
    ) -> None:
        diagram_id = await make_diagram(visibility="private")

        async with session_factory() as session:
            service = ModerationService(session, ModerationConfig(enabled=False), scheduler)
            await service.change_visibility(diagram_id, Visibility.PUBLIC, user_id=OWNER_ID)

        assert scheduler.scheduled == []

    @pytest.mark.asyncio
    async def test_other_users_cannot_change_visibility(
        self, session_factory, make_diagram, scheduler
    ) -> None:
        diagram_id = await make_diagram(visibility="private")

        async with session_factory() as session:
            service = ModerationService(session, ModerationConfig(), scheduler)
            result = await service.change_visibility(
                diagram_id, Visibility.PUBLIC, user_id=OTHER_USER_ID
            )

        assert result is None
        assert scheduler.scheduled == []
        async with session_factory() as session:
            assert (await session.get(Diagram, diagram_id)).visibility == "private"

    @pytest.mark.asyncio
    async def test_missing_diagram(self, session_factory, scheduler) -> None:
        async with session_factory() as session:
            service = ModerationService(session, ModerationConfig(), scheduler)
            result = await service.change_visibility(
                uuid.uuid4(), Visibility.PUBLIC, user_id=OWNER_ID
            )

        assert result is None


class TestAdminActions:
    @pytest.mark.asyncio
    async def test_admin_approve(self, session_factory, make_diagram) -> None:
        diagram_id = await make_diagram(moderation_status="manual_review")

        async with session_factory() as session:
            service = ModerationService(session, ModerationConfig())
            diagram = await service.admin_approve(diagram_id, ADMIN_ID)
            logs = await service.list_moderation_logs(diagram_id)

        assert diagram.moderation_status == "approved"
        assert diagram.moderation_reason == "Manually approved"
        assert len(logs) == 1
        assert logs[0].action == "admin_approve"
        assert logs[0].previous_status == "manual_review"
        assert logs[0].performed_by == ADMIN_ID

    @pytest.mark.asyncio
    async def test_admin_reject_hides_diagram(self, session_factory, make_diagram) -> None:
        diagram_id = await make_diagram(moderation_status="approved")

        async with session_factory() as session:
            service = ModerationService(session, ModerationConfig())
            diagram = await service.admin_reject(diagram_id, ADMIN_ID, "Off-topic content")
            logs = await service.list_moderation_logs(diagram_id)

        assert diagram.moderation_status == "rejected"
        assert diagram.visibility == "private"
        assert diagram.moderation_reason == "Off-topic content"
        assert [log.action for log in logs] == ["admin_reject"]

    @pytest.mark.asyncio
    async def test_admin_action_on_missing_diagram(self, session_factory) -> None:
        async with session_factory() as session:
            service = ModerationService(session, ModerationConfig())
            assert await service.admin_approve(uuid.uuid4(), ADMIN_ID) is None
            assert await service.admin_reject(uuid.uuid4(), ADMIN_ID, "x") is None


class TestQueries:
    @pytest.mark.asyncio
    async def test_pending_review_and_stats(self, session_factory, make_diagram) -> None:
        review_id = await make_diagram(moderation_status="manual_review")
        await make_diagram(moderation_status="approved")
        await make_diagram(moderation_status="approved")
        await make_diagram(moderation_status="pending")

        async with session_factory() as session:
            service = ModerationService(session, ModerationConfig())
            queue = await service.list_pending_review()
            stats = await service.moderation_stats()

        assert [d.id for d in queue] == [review_id]
        assert (stats.pending, stats.approved, stats.rejected, stats.manual_review) == (1, 2, 0, 1)
        assert stats.total == 4

    @pytest.mark.asyncio
    async def test_empty_stats(self, session_factory) -> None:
        async with session_factory() as session:
            stats = await ModerationService(session, ModerationConfig()).moderation_stats()

        assert stats.total == 0

    @pytest.mark.asyncio
    async def test_logs_filtered_by_diagram(self, session_factory, make_diagram) -> None:
        first = await make_diagram(moderation_status="manual_review")
        second = await make_diagram(moderation_status="manual_review")

        async with session_factory() as session:
            service = ModerationService(session, ModerationConfig())
            await service.admin_approve(first, ADMIN_ID)
            await service.admin_reject(second, ADMIN_ID, "spam")
            all_logs = await service.list_moderation_logs()
            first_logs = await service.list_moderation_logs(first)

        assert len(all_logs) == 2
        assert [log.diagram_id for log in first_logs] == [first]
