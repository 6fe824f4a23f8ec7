"""
Local persistence of saved rqlite connections (SQLAlchemy, SQLite by default).
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from loguru import logger
from sqlalchemy import Column, DateTime, String, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from ..utils.exceptions import RqliteBrowserError, ValidationError
from .models import DatabaseConnection

Base = declarative_base()


class SavedConnection(Base):
    __tablename__ = "saved_connections"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    url = Column(String(1024), nullable=False)
    username = Column(String(255), nullable=True)
    password = Column(String(255), nullable=True)
    created_at = Column(
        DateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )


class ConnectionStore:
    """CRUD for saved connections"""

    def __init__(self, database_url: str = "sqlite:///rqlitebrowser.db"):
        self.database_url = database_url
        self.engine = create_engine(database_url, future=True)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)
        Base.metadata.create_all(self.engine)

    def get_session(self) -> Session:
        return self.SessionLocal()

    def list_connections(self) -> List[DatabaseConnection]:
        session = self.get_session()
        try:
            rows = (
                session.query(SavedConnection)
                .order_by(SavedConnection.created_at, SavedConnection.name)
                .all()
            )
            return [DatabaseConnection.model_validate(row) for row in rows]
        finally:
            session.close()

    def get_connection(self, connection_id: str) -> Optional[DatabaseConnection]:
        session = self.get_session()
        try:
            row = session.get(SavedConnection, connection_id)
            return DatabaseConnection.model_validate(row) if row else None
        finally:
            session.close()

    def find_by_name(self, name: str) -> Optional[DatabaseConnection]:
        session = self.get_session()
        try:
            row = session.query(SavedConnection).filter_by(name=name).first()
            return DatabaseConnection.model_validate(row) if row else None
        finally:
            session.close()

    def add_connection(
        self,
        name: str,
        url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> DatabaseConnection:
        if not name or not url:
            raise ValidationError("Connection name and url are required")

        record = SavedConnection(
            id=str(uuid.uuid4()),
            name=name,
            url=url.rstrip("/"),
            username=username,
            password=password,
            created_at=datetime.now(timezone.utc),
        )
        session = self.get_session()
        try:
            session.add(record)
            session.commit()
            logger.info(f"Saved connection '{name}' ({record.url})")
            return DatabaseConnection.model_validate(record)
        except SQLAlchemyError as e:
            session.rollback()
            raise RqliteBrowserError(f"Failed to save connection '{name}': {e}") from e
        finally:
            session.close()

    def update_connection(self, connection: DatabaseConnection) -> bool:
        session = self.get_session()
        try:
            row = session.get(SavedConnection, connection.id)
            if row is None:
                return False
            row.name = connection.name
            row.url = connection.url.rstrip("/")
            row.username = connection.username
            row.password = connection.password
            session.commit()
            return True
        except SQLAlchemyError as e:
            session.rollback()
            raise RqliteBrowserError(
                f"Failed to update connection {connection.id}: {e}"
            ) from e
        finally:
            session.close()

    def remove_connection(self, connection_id: str) -> bool:
        session = self.get_session()
        try:
            deleted = (
                session.query(SavedConnection)
                .filter(SavedConnection.id == connection_id)
                .delete()
            )
            session.commit()
            if deleted:
                logger.info(f"Removed connection {connection_id}")
            return bool(deleted)
        except SQLAlchemyError as e:
            session.rollback()
            raise RqliteBrowserError(
                f"Failed to remove connection {connection_id}: {e}"
            ) from e
        finally:
            session.close()
