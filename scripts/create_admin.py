#!/usr/bin/env python3
"""
Скрипт для создания администратора дашборда.

    python scripts/create_admin.py admin 'secret' --email admin@example.com
"""

import argparse
import asyncio
import sys
import os

# Добавляем корневую папку проекта в путь
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.database.session import db_manager, get_async_session, init_database
from core.exceptions import AppError
from apps.web.services.auth_service import AuthService


async def create_admin(username: str, password: str, email: str = None) -> int:
    """Создание администратора."""
    await init_database()
    try:
        async with get_async_session() as session:
            admin = await AuthService(session).create_admin(username, password, email)
            print(f"✅ Администратор {admin['username']} создан (id={admin['id']})")
            return 0
    except AppError as e:
        print(f"❌ Ошибка создания администратора: {e.message}")
        return 1
    finally:
        await db_manager.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Создание администратора QA Dashboard")
    parser.add_argument("username")
    parser.add_argument("password")
    parser.add_argument("--email", default=None)
    args = parser.parse_args()

    sys.exit(asyncio.run(create_admin(args.username, args.password, args.email)))


if __name__ == "__main__":
    main()
