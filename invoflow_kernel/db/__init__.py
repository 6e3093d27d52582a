"""Database layer: declarative base, engine/session management, money types."""
