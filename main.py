"""
Ride Sharing Booking Backend
============================
Entry point. Run with: uvicorn main:app --reload

``python main.py`` starts the same app on ``API_HOST`` / ``API_PORT``.
"""

import uvicorn

from src.api.app import create_app
from src.config import settings

app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
