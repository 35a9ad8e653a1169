import pytest
from mcp.server.fastmcp.exceptions import ToolError

from taiga_mcp.tools import milestones

SPRINT = {
    "id": 80,
    "name": "Sprint 1",
    "project": 1,
    "estimated_start": "2026-10-01",
    "estimated_finish": "2026-10-14",
    "closed": False,
    "total_points": 13.0,
    "closed_points": 8.0,
    "user_stories": [{"id": 101}, {"id": 102}],
}


@pytest.fixture
def sprint(fake_taiga):
    """A milestone whose closed flag can be patched and whose stats follow its state."""
    state = dict(SPRINT)

    def patch(request):
        state.update(fake_taiga.body_of(request))
        return dict(state)

    def stats(request):
        return {
            "name": state["name"],
            "total_points": {"1": 8.0, "2": 5.0},
            "completed_points": [5.0, 3.0],
            "total_userstories": 2,
            "completed_userstories": 1,
            "total_tasks": 6,
            "completed_tasks": 4,
        }

    fake_taiga.add("PATCH", "/milestones/80", patch)
    fake_taiga.add("GET", "/milestones/80/stats", stats)
    return state


class TestMilestones:
    """Tests for milestone (sprint) tools."""

    @pytest.mark.asyncio
    async def test_close_then_stats(self, ctx, fake_taiga, sprint):
        """Closing reports the final completion; stats agree with it."""
        # Act
        closed = await milestones.close_milestone(ctx, 80)
        stats = await milestones.get_milestone_stats(ctx, 80)

        # Assert
        assert fake_taiga.body_of(fake_taiga.calls("PATCH", "/milestones/80")[0]) == {"closed": True}
        assert sprint["closed"] is True
        assert "Status: CLOSED" in closed
        assert "- Completion: 62%" in closed
        assert "Total Points: 13" in stats
        assert "Completed Points: 8" in stats
        assert stats.endswith("Progress: 8/13 points (62%)")

    @pytest.mark.asyncio
    async def test_stats_without_points(self, ctx, fake_taiga):
        """A milestone with no points reports 0% instead of failing."""
        # Arrange
        fake_taiga.add("GET", "/milestones/81/stats", {"total_points": {}, "completed_points": []})

        # Act
        result = await milestones.get_milestone_stats(ctx, 81)

        # Assert
        assert result.endswith("Progress: 0/0 points (0%)")
        assert "Total Tasks: 0" in result

    @pytest.mark.asyncio
    async def test_reopen(self, ctx, fake_taiga, sprint):
        # Act
        result = await milestones.reopen_milestone(ctx, 80)

        # Assert
        assert fake_taiga.body_of(fake_taiga.calls("PATCH", "/milestones/80")[0]) == {"closed": False}
        assert "Status: OPEN" in result
        assert "Current Stats:" in result

    @pytest.mark.asyncio
    async def test_list_only_open(self, ctx, fake_taiga):
        """The closed filter is applied to the listed milestones."""
        # Arrange
        fake_taiga.add("GET", "/milestones", [
            SPRINT,
            {**SPRINT, "id": 79, "name": "Sprint 0", "closed": True},
        ])

        # Act
        result = await milestones.list_milestones(ctx, "1", closed=False)

        # Assert
        assert "Milestone: Sprint 1" in result
        assert "Sprint 0" not in result
        assert result.endswith("Total: 1 milestone(s) (open)")

    @pytest.mark.asyncio
    async def test_list_filtered_to_nothing(self, ctx, fake_taiga):
        """A filter that matches nothing leaves no stray blank lines."""
        # Arrange
        fake_taiga.add("GET", "/milestones", [SPRINT])

        # Act
        result = await milestones.list_milestones(ctx, "1", closed=True)

        # Assert
        assert result == "Milestones for project 1:\n\nTotal: 0 milestone(s) (closed)"

    @pytest.mark.asyncio
    async def test_create_milestone(self, ctx, fake_taiga):
        # Arrange
        fake_taiga.add("POST", "/milestones", (201, SPRINT))

        # Act
        result = await milestones.create_milestone(ctx, "1", "Sprint 1", "2026-10-01", "2026-10-14")

        # Assert
        body = fake_taiga.body_of(fake_taiga.calls("POST", "/milestones")[0])
        assert body == {
            "project": 1,
            "name": "Sprint 1",
            "estimated_start": "2026-10-01",
            "estimated_finish": "2026-10-14",
        }
        assert "- Completion: 62%" in result
        assert "- User Stories: 2" in result

    @pytest.mark.asyncio
    async def test_update_without_fields(self, ctx):
        with pytest.raises(ToolError):
            await milestones.update_milestone(ctx, 80)
