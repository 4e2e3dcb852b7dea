"""Webhook scheduling engine.

This package contains the scheduler runtime that:
- Persists webhook jobs and their execution log to a DB (SQLite by default).
- Delivers due webhooks on a real timer loop, retrying failed attempts.
- Exposes the same operations over a REST API (FastAPI) and FastMCP tools.
"""
