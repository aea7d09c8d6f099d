#!/usr/bin/env python3
"""
Simple run script for the ActionFlow API.

Usage:
    python run.py

Or with custom settings:
    HOST=127.0.0.1 PORT=8080 python run.py
"""

import uvicorn

from actionflow.config import settings


def main():
    """Run the FastAPI application."""
    print(f"""
ActionFlow v{settings.APP_VERSION}
  Server:    http://{settings.HOST}:{settings.PORT}
  API Docs:  http://{settings.HOST}:{settings.PORT}/docs
  Demo flow: item-pipeline
    """)

    uvicorn.run(
        "actionflow.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
