"""Layered CRUD API starter: FastAPI, async SQLAlchemy and PostgreSQL."""
