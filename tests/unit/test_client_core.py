import httpx
import pytest

from taiga_mcp.config import Settings
from taiga_mcp.exceptions import TaigaAPIError
from taiga_mcp.taiga_client import TaigaSession


class TestRequests:
    """Tests for the request core shared by every tool."""

    @pytest.mark.asyncio
    async def test_returns_decoded_json(self, session, fake_taiga):
        """Successful responses are returned as parsed JSON."""
        # Arrange
        fake_taiga.add("GET", "/projects/1", {"id": 1, "name": "Demo"})

        # Act
        result = await session.get("/projects/1")

        # Assert
        assert result == {"id": 1, "name": "Demo"}

    @pytest.mark.asyncio
    async def test_none_params_are_dropped(self, session, fake_taiga):
        """Unset filters are not sent as query parameters."""
        # Arrange
        fake_taiga.add("GET", "/tasks", [])

        # Act
        await session.get("/tasks", params={"project": 3, "status": None, "assigned_to": None})

        # Assert
        request = fake_taiga.calls("GET", "/tasks")[0]
        assert dict(request.url.params) == {"project": "3"}

    @pytest.mark.asyncio
    async def test_json_body_is_sent(self, session, fake_taiga):
        """POST and PATCH bodies are sent as JSON."""
        # Arrange
        fake_taiga.add("PATCH", "/milestones/5", {"id": 5})

        # Act
        await session.patch("/milestones/5", json={"disponibility": None})

        # Assert
        request = fake_taiga.calls("PATCH", "/milestones/5")[0]
        assert fake_taiga.body_of(request) == {"disponibility": None}

    @pytest.mark.asyncio
    async def test_versioned_patch_fetches_current_version(self, session, fake_taiga):
        """Locked entities are patched with the version they have now."""
        # Arrange
        fake_taiga.add("GET", "/tasks/5", {"id": 5, "project": 1, "version": 3})
        fake_taiga.add("PATCH", "/tasks/5", {"id": 5, "version": 4})

        # Act
        result = await session.patch_versioned("/tasks/5", {"assigned_to": None})

        # Assert
        request = fake_taiga.calls("PATCH", "/tasks/5")[0]
        assert fake_taiga.body_of(request) == {"assigned_to": None, "version": 3}
        assert result["version"] == 4

    @pytest.mark.asyncio
    async def test_versioned_patch_reuses_fetched_entity(self, session, fake_taiga):
        """No extra GET when the caller already holds the entity."""
        # Arrange
        fake_taiga.add("PATCH", "/wiki/30", {"id": 30})

        # Act
        await session.patch_versioned("/wiki/30", {"content": "new"}, {"id": 30, "version": 8})

        # Assert
        assert fake_taiga.calls("GET", "/wiki/30") == []
        request = fake_taiga.calls("PATCH", "/wiki/30")[0]
        assert fake_taiga.body_of(request) == {"content": "new", "version": 8}

    @pytest.mark.asyncio
    async def test_versioned_patch_without_known_version(self, session, fake_taiga):
        """Nothing is sent when the entity does not report a version."""
        # Arrange
        fake_taiga.add("GET", "/epics/9", {"id": 9})

        # Act & Assert
        with pytest.raises(TaigaAPIError) as excinfo:
            await session.patch_versioned("/epics/9", {"subject": "x"})
        assert str(excinfo.value) == "Could not determine the current version of /epics/9"
        assert fake_taiga.calls("PATCH", "/epics/9") == []

    @pytest.mark.asyncio
    async def test_unversioned_patch_of_locked_entity_fails(self, session, fake_taiga):
        """Taiga refuses changes to a locked entity without its version."""
        # Act & Assert
        with pytest.raises(TaigaAPIError) as excinfo:
            await session.patch("/userstories/5", json={"subject": "x"})
        assert excinfo.value.status_code == 400
        assert "The version parameter is not valid" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_no_content_returns_none(self, session, fake_taiga):
        """DELETE answers with 204 and no body."""
        # Arrange
        fake_taiga.add("DELETE", "/tasks/5", (204, None))

        # Act
        result = await session.delete("/tasks/5")

        # Assert
        assert result is None

    @pytest.mark.asyncio
    async def test_error_status_carries_detail(self, session, fake_taiga):
        """Non-2xx answers raise TaigaAPIError with status and server message."""
        # Act & Assert
        with pytest.raises(TaigaAPIError) as excinfo:
            await session.get("/userstories/99")
        assert excinfo.value.status_code == 404
        assert str(excinfo.value) == "HTTP 404 from GET /userstories/99: Not found."

    @pytest.mark.asyncio
    async def test_field_validation_errors(self, session, fake_taiga):
        """Per-field validation errors are flattened into the message."""
        # Arrange
        fake_taiga.add("POST", "/userstories", (400, {"subject": ["This field is required."]}))

        # Act & Assert
        with pytest.raises(TaigaAPIError) as excinfo:
            await session.post("/userstories", json={"project": 1})
        assert excinfo.value.status_code == 400
        assert str(excinfo.value).endswith("subject: This field is required.")

    @pytest.mark.asyncio
    async def test_plain_text_error_body(self, session, fake_taiga):
        """Non-JSON error bodies are reported verbatim."""
        # Arrange
        fake_taiga.add("GET", "/projects", lambda request: httpx.Response(502, text="Bad Gateway"))

        # Act & Assert
        with pytest.raises(TaigaAPIError) as excinfo:
            await session.get("/projects")
        assert excinfo.value.status_code == 502
        assert "Bad Gateway" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_network_failure(self, session, fake_taiga):
        """Transport errors become TaigaAPIError without a status code."""
        # Arrange
        def timeout(request):
            raise httpx.ReadTimeout("timed out", request=request)
        fake_taiga.add("GET", "/projects", timeout)

        # Act & Assert
        with pytest.raises(TaigaAPIError) as excinfo:
            await session.get("/projects")
        assert excinfo.value.status_code is None
        assert "Could not reach Taiga" in str(excinfo.value)


class TestSessionConstruction:
    """Tests for building a session from configuration."""

    def test_empty_url_rejected(self):
        """A session needs an API URL."""
        with pytest.raises(ValueError):
            TaigaSession("")

    @pytest.mark.asyncio
    async def test_from_settings(self):
        """Settings provide URL, credentials and token lifetime."""
        # Arrange
        settings = Settings(
            TAIGA_API_URL="http://taiga.local/api/v1/",
            TAIGA_USERNAME="bot",
            TAIGA_PASSWORD="secret",
            TAIGA_TOKEN_LIFETIME=3600,
        )

        # Act
        session = TaigaSession.from_settings(settings)

        # Assert
        assert session.api_url == "http://taiga.local/api/v1"
        assert session.token_lifetime == 3600
        assert session._username == "bot"
        assert not session.is_authenticated
        await session.aclose()
