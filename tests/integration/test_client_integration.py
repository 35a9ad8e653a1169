import os
import re
import uuid
from types import SimpleNamespace

import pytest
import pytest_asyncio

from taiga_mcp.server import AppContext
from taiga_mcp.taiga_client import TaigaSession
from taiga_mcp.tools import projects, user_stories

API_URL = os.environ.get("TAIGA_TEST_API_URL")

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not API_URL, reason="TAIGA_TEST_API_URL is not set"),
]


@pytest_asyncio.fixture
async def live_session():
    """Session against a real Taiga, credentials from TAIGA_TEST_USERNAME/PASSWORD."""
    session = TaigaSession(
        API_URL,
        os.environ.get("TAIGA_TEST_USERNAME"),
        os.environ.get("TAIGA_TEST_PASSWORD"),
    )
    yield session
    await session.aclose()


@pytest.fixture
def live_ctx(live_session):
    return SimpleNamespace(
        request_context=SimpleNamespace(lifespan_context=AppContext(session=live_session))
    )


class TestLiveTaiga:
    """End-to-end checks against a disposable Taiga instance."""

    @pytest.mark.asyncio
    async def test_login_is_cached(self, live_session):
        user = await live_session.current_user()
        token = live_session.auth_token

        await live_session.get("/users/me")

        assert user["id"]
        assert live_session.auth_token == token

    @pytest.mark.asyncio
    async def test_user_story_round_trip(self, live_ctx, live_session):
        """Creates a throwaway project and a story in it, then reads, edits and re-reads the story."""
        name = f"mcp-it-{uuid.uuid4().hex[:8]}"
        created = await projects.create_project(live_ctx, name, "Integration test project")
        project_id = re.search(r"^ID: (\d+)$", created, re.MULTILINE).group(1)
        try:
            story = await user_stories.create_user_story(live_ctx, project_id, "Test Story")
            story_id = int(re.search(r"^ID: (\d+)$", story, re.MULTILINE).group(1))

            fetched = await user_stories.get_user_story(live_ctx, story_id)

            assert "Subject: Test Story" in fetched

            await user_stories.update_user_story(live_ctx, story_id, subject="Test Story (edited)")
            edited = await user_stories.get_user_story(live_ctx, story_id)

            assert "Subject: Test Story (edited)" in edited
        finally:
            await projects.delete_project(live_ctx, project_id, confirm=True)
