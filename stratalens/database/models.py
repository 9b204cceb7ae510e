"""SQLAlchemy models for data persistence."""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.orm import declarative_base
from datetime import datetime

Base = declarative_base()


class Upload(Base):
    """Track loaded files and their metadata."""

    __tablename__ = "uploads"

    id = Column(Integer, primary_key=True)
    filename = Column(String(255), nullable=False)
    file_hash = Column(String(64), index=True)
    row_count = Column(Integer)
    column_count = Column(Integer)
    columns = Column(JSON)  # column names and inferred types
    file_size_bytes = Column(Integer)
    uploaded_at = Column(DateTime, default=datetime.utcnow)


class SavedConfig(Base):
    """A named sampling configuration (method, sizes and stratification levels)."""

    __tablename__ = "saved_configs"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, unique=True, index=True)
    config = Column(JSON, nullable=False)  # SamplingConfig.model_dump(mode="json")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
