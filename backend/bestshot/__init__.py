"""
Best Shot Backend — Application Package Initializer
====================================================

What: Wedding-photo voting service. Participants pick exactly ten photos
      through a personal link; the admin watches completion and exports a PDF
      of the top photos.

Architecture Note:
    ┌─────────────────────────────────────┐
    │      Routes (HTTP + WebSocket)      │  ← vote, tally, admin, health
    ├─────────────────────────────────────┤
    │   Services / Domain / Presenters    │  ← ballot rules, ledger writes,
    │                                     │    tally aggregation, PDF export
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
