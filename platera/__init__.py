"""
Platera Backend — Application Package
=====================================

What: Recipe sharing API (recipes, reviews, comments, bookmarks) on top of an
      external identity provider and a hosted media service.
Who:  Imported by uvicorn (platera.main:app), Alembic and the test suite.

Layers:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← account sync, recipes, uploads
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← injected Database handle
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
