"""
Конфигурация pytest для тестов QA Dashboard
Объединяет фикстуры БД, фабрики сущностей и моки внешних сервисов
"""
import json

import pytest
import pytest_asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from core.config.settings import settings
from core.exceptions import ExternalServiceError
from domain.entities import Base, Tester, Bug, Comment, Screenshot
from shared.services.google_sheets_service import GoogleSheetsService


# In-memory SQLite: одна БД на тест
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# =============================================================================
# Фикстуры БД
# =============================================================================

@pytest_asyncio.fixture
async def test_engine():
    """Создать тестовый движок БД со всеми таблицами."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    """Создать сессию БД для каждого теста."""
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


# =============================================================================
# Моки внешних сервисов
# =============================================================================

@pytest.fixture(autouse=True)
def reset_singletons():
    """Сервисы-одиночки не переживают тест."""
    GoogleSheetsService.clear_instance()
    yield
    GoogleSheetsService.clear_instance()


@pytest.fixture
def mock_sheets():
    """Мок клиента Google Sheets: все операции успешны."""
    sheets = MagicMock(spec=GoogleSheetsService)
    sheets.append_tester = AsyncMock(return_value={"updatedRows": 1})
    sheets.update_tester = AsyncMock(return_value={"rowNumber": 2})
    sheets.fetch_testers = AsyncMock(return_value=[])
    sheets.check_connection = AsyncMock(return_value=True)
    sheets.retry_failed_operations = AsyncMock(return_value={"retriedCount": 0, "remainingCount": 0})
    sheets.get_status = MagicMock(return_value={
        "configured": True,
        "spreadsheetId": "sheet-id",
        "queueSize": 0,
        "workerRunning": False,
    })
    return sheets


@pytest.fixture
def failing_sheets(mock_sheets):
    """Google Sheets недоступен."""
    mock_sheets.append_tester = AsyncMock(side_effect=ExternalServiceError("Google Sheets append failed"))
    mock_sheets.update_tester = AsyncMock(side_effect=ExternalServiceError("Google Sheets update failed"))
    return mock_sheets


class DictCache:
    """Кэш в памяти с тем же интерфейсом, что у RedisCache."""

    def __init__(self):
        self.store = {}

    async def get(self, key):
        value = self.store.get(key)
        return json.loads(value) if value is not None else None

    async def set(self, key, value, ttl=None):
        self.store[key] = json.dumps(value)
        return True

    async def delete(self, key):
        return self.store.pop(key, None) is not None


@pytest.fixture
def fake_cache(monkeypatch):
    """Подключенный кэш сущностей."""
    fake = DictCache()
    monkeypatch.setattr("core.cache.cache_service.cache", fake)
    return fake


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    """Каталог загрузок во временной папке."""
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path / "uploads"))
    return tmp_path / "uploads"


# =============================================================================
# Фабрики сущностей
# =============================================================================

@pytest.fixture
def tester_data():
    """Данные регистрации тестера"""
    return {
        "name": "Иван Петров",
        "email": "ivan@example.com",
        "nickname": "ivan_qa",
        "telegram": "@ivan",
        "deviceType": "mobile",
        "os": "Android",
        "osVersion": "14",
    }


@pytest.fixture
def make_tester(db_session):
    """Фабрика тестеров в БД напрямую, без побочных эффектов."""
    counter = {"n": 0}

    async def _make(**overrides) -> Tester:
        counter["n"] += 1
        values = {
            "name": f"Tester {counter['n']}",
            "email": f"tester{counter['n']}@example.com",
            "device_type": "mobile",
            "os": "iOS",
            "status": "active",
            "bugs_count": 0,
            "rating": 0,
        }
        values.update(overrides)
        tester = Tester(**values)
        db_session.add(tester)
        await db_session.commit()
        return tester

    return _make


@pytest.fixture
def make_bug(db_session):
    """Фабрика багов в БД напрямую, без пересчета рейтинга."""

    async def _make(tester_id: int, priority: str = "medium", **overrides) -> Bug:
        values = {
            "title": "Кнопка не нажимается",
            "description": "Шаги воспроизведения",
            "tester_id": tester_id,
            "priority": priority,
            "status": "new",
            "type": "ui",
        }
        values.update(overrides)
        bug = Bug(**values)
        db_session.add(bug)
        await db_session.commit()
        return bug

    return _make


@pytest.fixture
def make_comment(db_session):
    async def _make(bug_id: int, author_id: int = 1, created_at: datetime = None, **overrides) -> Comment:
        created = created_at or datetime.now(timezone.utc)
        values = {
            "bug_id": bug_id,
            "author_id": author_id,
            "author_name": "Admin",
            "content": "Воспроизводится на Android 14",
            "created_at": created,
            "updated_at": created,
        }
        values.update(overrides)
        comment = Comment(**values)
        db_session.add(comment)
        await db_session.commit()
        return comment

    return _make


@pytest.fixture
def make_screenshots(db_session):
    """Создает N записей скриншотов без файлов."""

    async def _make(bug_id: int, count: int):
        uploaded = datetime.now(timezone.utc) - timedelta(minutes=count)
        for index in range(count):
            db_session.add(Screenshot(
                bug_id=bug_id,
                filename=f"shot{index}.png",
                file_path=f"/nonexistent/shot{index}.png",
                file_size=1024,
                mime_type="image/png",
                uploaded_at=uploaded + timedelta(minutes=index),
            ))
        await db_session.commit()

    return _make
