"""Named sampling configurations and the upload log, backed by SQLAlchemy."""

import logging
from typing import List, Optional

from pydantic import ValidationError

from stratalens.core.state import ColumnType, SamplingConfig
from stratalens.database.db_init import get_session_factory
from stratalens.database.models import SavedConfig, Upload

logger = logging.getLogger(__name__)

NAME_REQUIRED = "Please enter a name for the configuration."
NAME_TAKEN = "This name is already in use."


class ConfigStore:
    """CRUD over :class:`SavedConfig` rows."""

    def __init__(self, database_url: str | None = None):
        self._session_factory = get_session_factory(database_url)

    def names(self) -> List[str]:
        with self._session_factory() as session:
            rows = session.query(SavedConfig.name).order_by(SavedConfig.created_at, SavedConfig.id).all()
            return [name for (name,) in rows]

    def get(self, name: str) -> Optional[SamplingConfig]:
        with self._session_factory() as session:
            row = session.query(SavedConfig).filter_by(name=name).one_or_none()
            if row is None:
                return None
            try:
                return SamplingConfig.model_validate(row.config)
            except ValidationError as e:
                logger.error(f"Saved configuration '{name}' is unreadable: {e}")
                return None

    def save(self, name: str, config: SamplingConfig) -> Optional[str]:
        """Store *config* under *name*, overwriting an existing entry.

        Returns an error message for an empty name, otherwise None.
        """
        name = (name or "").strip()
        if not name:
            return NAME_REQUIRED
        payload = config.model_dump(mode="json")
        with self._session_factory() as session:
            row = session.query(SavedConfig).filter_by(name=name).one_or_none()
            if row is None:
                session.add(SavedConfig(name=name, config=payload))
            else:
                row.config = payload
            session.commit()
        logger.info(f"Saved sampling configuration '{name}'")
        return None

    def rename(self, old: str, new: str) -> Optional[str]:
        """Rename a configuration; returns an error message when *new* is empty or taken."""
        new = (new or "").strip()
        if not new:
            return NAME_REQUIRED
        if new == old:
            return None
        with self._session_factory() as session:
            if session.query(SavedConfig).filter_by(name=new).count():
                return NAME_TAKEN
            row = session.query(SavedConfig).filter_by(name=old).one_or_none()
            if row is not None:
                row.name = new
                session.commit()
                logger.info(f"Renamed sampling configuration '{old}' → '{new}'")
        return None

    def delete(self, name: str) -> bool:
        with self._session_factory() as session:
            deleted = session.query(SavedConfig).filter_by(name=name).delete()
            session.commit()
        if deleted:
            logger.info(f"Deleted sampling configuration '{name}'")
        return bool(deleted)

    def record_upload(
        self,
        filename: str,
        file_hash: str,
        column_types: dict[str, ColumnType],
        row_count: int,
        file_size_bytes: int | None = None,
    ) -> None:
        """Append a row to the upload log."""
        with self._session_factory() as session:
            session.add(Upload(
                filename=filename,
                file_hash=file_hash,
                row_count=row_count,
                column_count=len(column_types),
                columns={name: ColumnType(t).value for name, t in column_types.items()},
                file_size_bytes=file_size_bytes,
            ))
            session.commit()

    def uploads(self, limit: int = 20) -> List[dict]:
        """Most recent uploads first."""
        with self._session_factory() as session:
            rows = session.query(Upload).order_by(Upload.id.desc()).limit(limit).all()
            return [
                {"filename": r.filename, "rows": r.row_count, "columns": r.column_count,
                 "hash": r.file_hash, "uploaded_at": r.uploaded_at}
                for r in rows
            ]
