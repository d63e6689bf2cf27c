"""Storage package - SQLAlchemy tables, store lifecycle and repositories."""
