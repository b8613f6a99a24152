"""
File: zapdesk/api/__init__.py

Project: ZapDesk

Purpose:
Dashboard JSON API package.
"""

from .routes import router as api_router
