"""
SnapStream Backend — Application Package Initializer
====================================================

What: Ephemeral image-post ("snap") backend: upload, feed, live updates,
      and a background reaper that purges snaps 12 hours after creation.
Who:  Imported by uvicorn (snapstream.main:app), Alembic, and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │      Routes (API + WebSocket)       │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (Content Store, Index,   │  ← Transactions, business rules
    │   Feed Assembler, Expiry Reaper)    │
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │  Database handle (app.state scope)  │  ← Async SQLAlchemy engine
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
