import pytest
from mcp.server.fastmcp.exceptions import ToolError

from taiga_mcp.tools import projects

PROJECT = {
    "id": 1,
    "name": "Demo",
    "slug": "demo",
    "description": "A demo project",
    "is_private": True,
    "owner": {"full_name_display": "Test User"},
    "total_memberships": 3,
}


class TestProjects:
    """Tests for project tools."""

    @pytest.mark.asyncio
    async def test_list_projects_for_current_user(self, ctx, fake_taiga):
        """Only projects the logged-in user belongs to are listed."""
        # Arrange
        fake_taiga.add("GET", "/projects", [PROJECT, {"id": 2, "name": "Other", "slug": "other"}])

        # Act
        result = await projects.list_projects(ctx)

        # Assert
        assert fake_taiga.calls("GET", "/projects")[0].url.params["member"] == "7"
        assert "- Demo (ID: 1, Slug: demo)" in result
        assert "- Other (ID: 2, Slug: other)" in result

    @pytest.mark.asyncio
    async def test_list_projects_empty(self, ctx, fake_taiga):
        # Arrange
        fake_taiga.add("GET", "/projects", [])

        # Act
        result = await projects.list_projects(ctx)

        # Assert
        assert result == "You are not a member of any Taiga project."

    @pytest.mark.asyncio
    async def test_get_project_by_slug_identifier(self, ctx, fake_taiga):
        # Arrange
        fake_taiga.add("GET", "/projects/by_slug", PROJECT)
        fake_taiga.add("GET", "/projects/1", PROJECT)

        # Act
        result = await projects.get_project(ctx, "demo")

        # Assert
        assert "Owner: Test User" in result
        assert "Is Private: Yes" in result
        assert "Total Members: 3" in result

    @pytest.mark.asyncio
    async def test_create_project_requires_description(self, ctx, fake_taiga):
        with pytest.raises(ToolError) as excinfo:
            await projects.create_project(ctx, "Demo", "")
        assert str(excinfo.value) == "Failed to create project: Project name and description are required."
        assert fake_taiga.requests == []

    @pytest.mark.asyncio
    async def test_update_project(self, ctx, fake_taiga):
        # Arrange
        fake_taiga.add("PATCH", "/projects/1", {**PROJECT, "is_private": False})

        # Act
        result = await projects.update_project(ctx, "1", is_private=False)

        # Assert
        body = fake_taiga.body_of(fake_taiga.calls("PATCH", "/projects/1")[0])
        assert body == {"is_private": False}
        assert "Private: No" in result

    @pytest.mark.asyncio
    async def test_delete_needs_confirmation(self, ctx, fake_taiga):
        """Nothing is deleted unless confirm is true."""
        # Act
        result = await projects.delete_project(ctx, "1", confirm=False)

        # Assert
        assert result.startswith("Project deletion cancelled.")
        assert fake_taiga.requests == []

    @pytest.mark.asyncio
    async def test_delete_confirmed(self, ctx, fake_taiga):
        # Arrange
        fake_taiga.add("DELETE", "/projects/1", (204, None))

        # Act
        result = await projects.delete_project(ctx, "1", confirm=True)

        # Assert
        assert result == "Project 1 has been permanently deleted."

    @pytest.mark.asyncio
    async def test_project_stats(self, ctx, fake_taiga):
        # Arrange
        fake_taiga.add("GET", "/projects/1/stats", {"total_points": 40, "closed_points": 12, "speed": 6})

        # Act
        result = await projects.get_project_stats(ctx, "1")

        # Assert
        assert "Total Points: 40" in result
        assert "Defined Points: 0" in result
        assert "Speed: 6" in result

    @pytest.mark.asyncio
    async def test_search(self, ctx, fake_taiga):
        # Arrange
        fake_taiga.add("GET", "/search", {
            "userstories": [{"ref": 1, "subject": "Login page"}],
            "tasks": [],
            "wikipages": [{"slug": "login-flow"}],
        })

        # Act
        result = await projects.search_project(ctx, "1", "login")

        # Assert
        params = fake_taiga.calls("GET", "/search")[0].url.params
        assert params["text"] == "login"
        assert "User Stories:\n- #1: Login page" in result
        assert "Tasks:" not in result
        assert "Wiki Pages:\n- login-flow" in result

    @pytest.mark.asyncio
    async def test_search_without_results(self, ctx, fake_taiga):
        # Arrange
        fake_taiga.add("GET", "/search", {"count": 0})

        # Act
        result = await projects.search_project(ctx, "1", "nothing")

        # Assert
        assert result == 'No results found for "nothing".'

    @pytest.mark.asyncio
    async def test_export_and_status(self, ctx, fake_taiga):
        # Arrange
        fake_taiga.add("POST", "/exporter/1", (202, {"export_id": "abc123"}))
        fake_taiga.add("GET", "/exporter/abc123", {"status": "done", "url": "http://taiga.test/dump.json"})

        # Act
        started = await projects.export_project(ctx, "1")
        status = await projects.get_export_status(ctx, "abc123")

        # Assert
        assert "Export ID: abc123" in started
        assert "Status: done" in status
        assert "Download URL: http://taiga.test/dump.json" in status

    @pytest.mark.asyncio
    async def test_invite_user(self, ctx, fake_taiga):
        # Arrange
        fake_taiga.add("POST", "/memberships", (201, {"project_name": "Demo", "role_name": "Developer"}))

        # Act
        result = await projects.invite_project_user(ctx, "1", "new@example.com", 4)

        # Assert
        body = fake_taiga.body_of(fake_taiga.calls("POST", "/memberships")[0])
        assert body == {"project": 1, "role": 4, "username": "new@example.com"}
        assert "Role: Developer" in result
