"""
Фикстуры интеграционных тестов API.

Приложение работает поверх тестовой SQLite сессии, клиент Google Sheets
заменен моком. Lifespan не запускается.
"""
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from apps.web.app import app
from apps.web.dependencies import get_sheets_service
from apps.web.middleware.auth_middleware import require_admin
from core.database.session import get_db_session

TEST_ADMIN = {"id": 1, "username": "admin"}


@pytest_asyncio.fixture
async def anon_client(db_session, mock_sheets):
    """Клиент без авторизации."""

    async def override_session():
        yield db_session

    app.dependency_overrides[get_db_session] = override_session
    app.dependency_overrides[get_sheets_service] = lambda: mock_sheets

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(anon_client):
    """Клиент, авторизованный как администратор."""
    app.dependency_overrides[require_admin] = lambda: TEST_ADMIN
    yield anon_client
