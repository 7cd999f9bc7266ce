"""
Database models for persisted cache rows and user settings
SQLAlchemy ORM models backing the row stores and the favorites setting
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, Float, DateTime
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class CacheRow(Base):
    """
    Cache row - one value per (namespace, key)
    Namespace "search" backs the TTL cache, "lora" backs the durable version cache
    """
    __tablename__ = "cache_entries"

    namespace = Column(String, primary_key=True)
    cache_key = Column(String, primary_key=True)
    parent_id = Column(String, nullable=True, index=True)
    value = Column(Text, nullable=False)  # JSON document
    stored_at = Column(Float, nullable=False)

    def __repr__(self):
        return f"<CacheRow(namespace='{self.namespace}', key='{self.cache_key}')>"


class UserSettings(Base):
    """
    User settings - single row (id=1) for the local user
    """
    __tablename__ = "user_settings"

    id = Column(Integer, primary_key=True)
    favorite_styles = Column(Text, nullable=True)  # JSON list of style names
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<UserSettings(id={self.id})>"
