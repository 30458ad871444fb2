import logging
from datetime import timedelta
from typing import List, Optional

from fastapi import Depends
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import models, schemas
from .database import get_db
from .errors import ConflictError, InternalError, NotFoundError

logger = logging.getLogger(__name__)

RECENT_WINDOW = timedelta(days=7)


def normalize_email(email: str) -> str:
    """Canonical form used both for storage and for every lookup."""
    return email.strip().casefold()


class RegistrantStore:
    """Registrant persistence over a single SQLAlchemy session.

    Nothing is cached; every call goes back to the database. Low-level
    SQLAlchemy errors are rolled back and re-raised as ``InternalError`` so
    the API layer can translate them into a clean response.
    """

    def __init__(self, db: Session):
        self.db = db

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise InternalError("Database commit failed") from exc

    def insert(self, record: schemas.NewRegistrant) -> models.Registrant:
        now = models.utcnow()
        registrant = models.Registrant(
            full_name=record.full_name,
            email=normalize_email(record.email),
            phone=record.phone,
            condition=record.condition,
            location=record.location,
            consent=record.consent is True,
            registered_at=now,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        self.db.add(registrant)
        try:
            self.db.commit()
        except IntegrityError as exc:
            # The partial unique index on active emails rejected the row.
            self.db.rollback()
            raise ConflictError("An account with this email already exists.") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise InternalError("Database commit failed") from exc

        self.db.refresh(registrant)
        return registrant

    def find_active_by_email(self, email: str) -> Optional[models.Registrant]:
        try:
            return (
                self.db.query(models.Registrant)
                .filter(
                    models.Registrant.email == normalize_email(email),
                    models.Registrant.is_active.is_(True),
                )
                .first()
            )
        except SQLAlchemyError as exc:
            raise InternalError("Database query failed") from exc

    def list_active(self) -> List[models.Registrant]:
        try:
            return (
                self.db.query(models.Registrant)
                .filter(models.Registrant.is_active.is_(True))
                .order_by(models.Registrant.registered_at.desc(), models.Registrant.id.desc())
                .all()
            )
        except SQLAlchemyError as exc:
            raise InternalError("Database query failed") from exc

    def deactivate(self, email: str) -> models.Registrant:
        registrant = self.find_active_by_email(email)
        if registrant is None:
            raise NotFoundError("User not found")

        registrant.is_active = False
        registrant.updated_at = models.utcnow()
        self._commit()
        self.db.refresh(registrant)
        logger.info("Deactivated registrant id=%s", registrant.id)
        return registrant

    def stats(self) -> schemas.RegistrantStats:
        active = models.Registrant.is_active.is_(True)
        cutoff = models.utcnow() - RECENT_WINDOW
        try:
            total = (
                self.db.query(func.count(models.Registrant.id)).filter(active).scalar()
            )
            recent = (
                self.db.query(func.count(models.Registrant.id))
                .filter(active, models.Registrant.registered_at >= cutoff)
                .scalar()
            )
            consented = (
                self.db.query(func.count(models.Registrant.id))
                .filter(active, models.Registrant.consent.is_(True))
                .scalar()
            )
        except SQLAlchemyError as exc:
            raise InternalError("Database query failed") from exc

        return schemas.RegistrantStats(
            total=total or 0, recent=recent or 0, consented=consented or 0
        )


def get_store(db: Session = Depends(get_db)) -> RegistrantStore:
    return RegistrantStore(db)
