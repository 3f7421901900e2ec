"""Очередь повторов для операций внешней синхронизации."""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from core.config.settings import settings
from core.logging.logger import StructuredLogger

logger = StructuredLogger("qa_dashboard.sync")


@dataclass
class RetryItem:
    """Операция, ожидающая повтора."""
    operation: str
    data: Dict[str, Any]
    attempts: int = 0
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    next_attempt_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


RetryHandler = Callable[[RetryItem], Awaitable[Any]]


class RetryQueue:
    """Очередь на asyncio.Queue с одним фоновым обработчиком.

    Первая попытка через base_delay после постановки. После неудачной
    попытки задержка min(base_delay * 2^attempts, max_delay). После
    max_attempts неудач операция отбрасывается.
    """

    def __init__(
        self,
        handler: RetryHandler,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
    ):
        self.handler = handler
        self.max_attempts = max_attempts if max_attempts is not None else settings.sheets_retry_max_attempts
        self.base_delay = base_delay if base_delay is not None else settings.sheets_retry_base_delay_seconds
        self.max_delay = max_delay if max_delay is not None else settings.sheets_retry_max_delay_seconds
        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._in_flight: Optional[RetryItem] = None

    def next_delay(self, attempts: int) -> float:
        """Задержка перед следующей попыткой в секундах."""
        return min(self.base_delay * (2 ** attempts), self.max_delay)

    @property
    def size(self) -> int:
        return self._queue.qsize() + (1 if self._in_flight else 0)

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def enqueue(self, operation: str, data: Dict[str, Any]) -> RetryItem:
        item = RetryItem(operation=operation, data=data)
        item.next_attempt_at = item.next_attempt_at + timedelta(seconds=self.next_delay(0))
        self._queue.put_nowait(item)
        logger.info(f"Queued {operation} operation for retry", operation=operation, key=item.id)
        return item

    async def _attempt(self, item: RetryItem) -> bool:
        """Одна попытка. True при успехе; при неудаче элемент возвращается в очередь или отбрасывается."""
        try:
            await self.handler(item)
            logger.info(f"Retried {item.operation} operation {item.id}", operation=item.operation)
            return True
        except Exception as e:
            item.attempts += 1
            logger.warning(
                f"Retry failed for operation {item.id}: {e}",
                operation=item.operation,
                attempt=item.attempts,
            )
            if item.attempts >= self.max_attempts:
                logger.error(f"Max retries exceeded for operation {item.id}", operation=item.operation)
                return False

            delay = self.next_delay(item.attempts)
            item.next_attempt_at = datetime.now(timezone.utc) + timedelta(seconds=delay)
            self._queue.put_nowait(item)
            return False

    async def _run(self) -> None:
        while True:
            item = await self._queue.get()
            self._in_flight = item
            try:
                wait = (item.next_attempt_at - datetime.now(timezone.utc)).total_seconds()
                if wait > 0:
                    await asyncio.sleep(wait)
                # Пока обработчик ждал, элемент мог забрать drain()
                if self._in_flight is item:
                    self._in_flight = None
                    await self._attempt(item)
            finally:
                self._in_flight = None
                self._queue.task_done()

    def start(self) -> None:
        """Запуск фонового обработчика."""
        if self.is_running:
            return
        self._worker = asyncio.create_task(self._run())
        logger.info("Sync retry worker started")

    async def stop(self) -> None:
        """Остановка фонового обработчика. Неотправленные операции теряются."""
        if not self._worker:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Sync retry worker stopped")

    async def drain(self) -> Dict[str, int]:
        """Немедленно повторяет все операции, включая ожидаемую обработчиком."""
        items: List[RetryItem] = []
        if self._in_flight is not None:
            items.append(self._in_flight)
            self._in_flight = None
        while not self._queue.empty():
            items.append(self._queue.get_nowait())
            self._queue.task_done()

        retried = 0
        for item in items:
            if await self._attempt(item):
                retried += 1

        return {"retriedCount": retried, "remainingCount": self.size}
