"""Базовый класс для сервисов-одиночек, хранящих состояние процесса."""

from typing import Dict
from core.logging.logger import logger


class BaseService:
    """Singleton: один экземпляр на класс в рамках процесса.

    Используется сервисами, которые держат внешние клиенты и фоновые
    очереди. Сервисы предметной области создаются на каждую сессию БД.
    """

    _instances: Dict[type, 'BaseService'] = {}

    def __new__(cls):
        if cls not in cls._instances:
            cls._instances[cls] = super().__new__(cls)
            cls._instances[cls]._initialized = False
        return cls._instances[cls]

    def __init__(self):
        if not self._initialized:
            self._initialize_service()
            self._initialized = True

    def _initialize_service(self):
        """Метод для переопределения в наследниках."""
        logger.info(f"{self.__class__.__name__} initialized")

    @classmethod
    def get_instance(cls):
        return cls()

    @classmethod
    def clear_instance(cls):
        """Очистка экземпляра сервиса (для тестов)."""
        cls._instances.pop(cls, None)
