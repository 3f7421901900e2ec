"""
Зеркалирование тестеров в Google Sheets.

Одна таблица с фиксированным порядком колонок:
ID, Name, Email, Nickname, Telegram, DeviceType, OS, OSVersion,
RegistrationDate, Status. Запись односторонняя, ошибки ставят
операцию в очередь повторов.
"""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from core.config.settings import settings
from core.exceptions import ExternalServiceError
from core.logging.logger import logger
from core.sync.retry_queue import RetryItem, RetryQueue
from shared.services.base_service import BaseService

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
TOKEN_URI = "https://oauth2.googleapis.com/token"

SHEET_COLUMNS = (
    "ID", "Name", "Email", "Nickname", "Telegram",
    "DeviceType", "OS", "OSVersion", "RegistrationDate", "Status",
)

HEADER_MARKERS = ("id", "identifier", "тестер")


def tester_to_row(tester: Dict[str, Any]) -> List[Any]:
    """Строка таблицы для тестера в порядке SHEET_COLUMNS."""
    registration = tester.get("registrationDate")
    if isinstance(registration, datetime):
        registration = registration.isoformat()
    return [
        tester.get("id"),
        tester.get("name"),
        tester.get("email"),
        tester.get("nickname") or "",
        tester.get("telegram") or "",
        tester.get("deviceType"),
        tester.get("os"),
        tester.get("osVersion") or "",
        registration or datetime.now(timezone.utc).isoformat(),
        tester.get("status") or "active",
    ]


def is_header_row(row: List[Any]) -> bool:
    if not row:
        return False
    return str(row[0]).strip().lower() in HEADER_MARKERS


def parse_date(value: str) -> datetime:
    """Дата из ячейки; при пустом или нечитаемом значении - текущее время."""
    if not value:
        return datetime.now(timezone.utc)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_row(row: List[Any], row_number: int) -> Optional[Dict[str, Any]]:
    """Разбор строки таблицы. ValueError, если нет обязательных полей."""
    if not row:
        return None

    def cell(index: int, default: str = "") -> str:
        if index < len(row) and row[index] not in (None, ""):
            return str(row[index]).strip()
        return default

    tester = {
        "id": cell(0),
        "name": cell(1),
        "email": cell(2),
        "nickname": cell(3),
        "telegram": cell(4),
        "deviceType": cell(5),
        "os": cell(6),
        "osVersion": cell(7),
        "registrationDate": parse_date(cell(8)),
        "status": cell(9, "active"),
        "googleSheetsRowId": row_number,
    }
    if not (tester["id"] and tester["name"] and tester["deviceType"] and tester["os"]):
        raise ValueError(f"Missing required fields in row {row_number}")
    return tester


class GoogleSheetsService(BaseService):
    """Клиент Google Sheets API с очередью повторов."""

    def _initialize_service(self):
        self._service = None
        self.spreadsheet_id = settings.google_sheets_spreadsheet_id
        self.sheet_range = settings.google_sheets_range
        self.sheet_name = self.sheet_range.split("!")[0]
        self.retry_queue = RetryQueue(self._execute_retry)
        super()._initialize_service()

    # === Аутентификация ===

    def _load_credentials(self) -> Credentials:
        """OAuth2 учетные данные из настроек или из JSON файла."""
        if settings.google_client_id and settings.google_client_secret:
            info = {
                "client_id": settings.google_client_id,
                "client_secret": settings.google_client_secret,
                "refresh_token": settings.google_refresh_token,
            }
        else:
            path = Path(settings.google_credentials_file)
            if not path.exists():
                raise ExternalServiceError(
                    "Google credentials not found. Set GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET "
                    f"or create {settings.google_credentials_file}"
                )
            info = json.loads(path.read_text(encoding="utf-8"))

        return Credentials(
            token=None,
            refresh_token=info.get("refresh_token"),
            token_uri=info.get("token_uri", TOKEN_URI),
            client_id=info.get("client_id"),
            client_secret=info.get("client_secret"),
            scopes=SHEETS_SCOPES,
        )

    def _get_service(self):
        """Ленивая сборка клиента Sheets v4."""
        if not self.spreadsheet_id:
            raise ExternalServiceError("Google Sheets не настроен: не задан GOOGLE_SHEETS_SPREADSHEET_ID")
        if self._service is None:
            credentials = self._load_credentials()
            self._service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
            logger.info("Google Sheets authentication successful")
        return self._service

    async def _call(self, request_factory):
        """Выполняет блокирующий запрос клиента в отдельном потоке."""
        service = self._get_service()
        return await asyncio.to_thread(lambda: request_factory(service).execute())

    # === Операции ===

    async def check_connection(self) -> bool:
        try:
            await self._call(lambda s: s.spreadsheets().get(spreadsheetId=self.spreadsheet_id))
            return True
        except Exception as e:
            logger.error(f"Google Sheets connection check failed: {e}")
            return False

    async def _append_row(self, tester: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._call(
            lambda s: s.spreadsheets().values().append(
                spreadsheetId=self.spreadsheet_id,
                range=self.sheet_range,
                valueInputOption="RAW",
                body={"values": [tester_to_row(tester)]},
            )
        )
        updates = response.get("updates", {})
        logger.info(f"Google Sheets: appended tester {tester.get('id')} ({tester.get('name')})")
        return {"updatedRows": updates.get("updatedRows"), "updatedRange": updates.get("updatedRange")}

    async def append_tester(self, tester: Dict[str, Any]) -> Dict[str, Any]:
        """
        Добавление тестера в таблицу.

        Raises:
            ExternalServiceError: API недоступен; операция поставлена в очередь повторов
        """
        try:
            return await self._append_row(tester)
        except ExternalServiceError:
            if self.spreadsheet_id:
                self.retry_queue.enqueue("append", tester)
            raise
        except Exception as e:
            logger.error(f"Failed to append tester {tester.get('id')} to Google Sheets: {e}")
            self.retry_queue.enqueue("append", tester)
            raise ExternalServiceError(f"Google Sheets append failed: {e}")

    async def fetch_testers(self) -> List[Dict[str, Any]]:
        """Все тестеры из таблицы. Нечитаемые строки пропускаются."""
        try:
            response = await self._call(
                lambda s: s.spreadsheets().values().get(spreadsheetId=self.spreadsheet_id, range=self.sheet_range)
            )
        except ExternalServiceError:
            raise
        except Exception as e:
            logger.error(f"Failed to fetch testers from Google Sheets: {e}")
            raise ExternalServiceError(f"Google Sheets fetch failed: {e}")

        rows = response.get("values", [])
        offset = 1
        if rows and is_header_row(rows[0]):
            rows = rows[1:]
            offset = 2

        testers = []
        for index, row in enumerate(rows):
            row_number = index + offset
            try:
                tester = parse_row(row, row_number)
            except ValueError as e:
                logger.warning(f"Failed to parse row {row_number}: {e}")
                continue
            if tester:
                testers.append(tester)

        logger.info(f"Google Sheets: fetched {len(testers)} testers")
        return testers

    async def _update_row(self, tester_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        testers = await self.fetch_testers()
        current = next((t for t in testers if str(t["id"]) == str(tester_id)), None)
        if current is None:
            raise LookupError(f"Tester {tester_id} not found in Google Sheets")

        row_number = current["googleSheetsRowId"]
        merged = {**current, **{k: v for k, v in data.items() if v is not None}}
        await self._call(
            lambda s: s.spreadsheets().values().update(
                spreadsheetId=self.spreadsheet_id,
                range=f"{self.sheet_name}!A{row_number}:J{row_number}",
                valueInputOption="RAW",
                body={"values": [tester_to_row(merged)]},
            )
        )
        logger.info(f"Google Sheets: updated tester {tester_id} at row {row_number}")
        return {"rowNumber": row_number}

    async def update_tester(self, tester_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """Обновление строки тестера. Ошибка API ставит операцию в очередь."""
        try:
            return await self._update_row(tester_id, data)
        except LookupError as e:
            raise ExternalServiceError(str(e))
        except ExternalServiceError:
            if self.spreadsheet_id:
                self.retry_queue.enqueue("update", {"testerId": tester_id, **data})
            raise
        except Exception as e:
            logger.error(f"Failed to update tester {tester_id} in Google Sheets: {e}")
            self.retry_queue.enqueue("update", {"testerId": tester_id, **data})
            raise ExternalServiceError(f"Google Sheets update failed: {e}")

    # === Очередь повторов ===

    async def _execute_retry(self, item: RetryItem) -> None:
        if item.operation == "append":
            await self._append_row(item.data)
        elif item.operation == "update":
            data = dict(item.data)
            tester_id = data.pop("testerId")
            await self._update_row(tester_id, data)
        else:
            raise ValueError(f"Unknown sync operation: {item.operation}")

    def start_retry_worker(self) -> None:
        self.retry_queue.start()

    async def stop_retry_worker(self) -> None:
        await self.retry_queue.stop()

    async def retry_failed_operations(self) -> Dict[str, int]:
        """Ручной запуск повторов всех операций в очереди."""
        if self.retry_queue.size == 0:
            logger.info("No failed Google Sheets operations to retry")
            return {"retriedCount": 0, "remainingCount": 0}
        return await self.retry_queue.drain()

    def get_status(self) -> Dict[str, Any]:
        return {
            "configured": bool(self.spreadsheet_id),
            "spreadsheetId": self.spreadsheet_id,
            "queueSize": self.retry_queue.size,
            "workerRunning": self.retry_queue.is_running,
        }
