#!/usr/bin/env python3
"""
Точка входа QA Dashboard: запуск API через uvicorn
"""

import uvicorn

from core.config.settings import settings


def main():
    """Основная функция запуска сервера."""
    uvicorn.run(
        "apps.web.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_config=None,  # логирование настраивает core.logging
    )


if __name__ == "__main__":
    main()
