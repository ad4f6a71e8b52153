"""
RemitDesk FastAPI Application

Main application entry point. The application itself is assembled by
``remitdesk.app_factory.create_application``.
"""

import uvicorn

from remitdesk.app_factory import create_application
from remitdesk.core.config.settings import get_settings

app = create_application(get_settings())


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "remitdesk.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.ENVIRONMENT == "development",
        log_config=None,
    )
