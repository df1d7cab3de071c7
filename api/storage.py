"""
Storage layer for users and uploads.

``Storage`` is the contract used by the API. Two implementations exist:
``SqlStorage`` over a SQLAlchemy session and ``MemoryStorage`` for
development and tests. ``config.STORAGE_BACKEND`` picks one at runtime via
the ``get_storage`` dependency.

Creating an upload credits the owning user's balance and carbon credits.
Both writes succeed or fail together, and concurrent uploads for the same
user never lose an increment.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import List, NamedTuple, Optional
import itertools
import logging
import threading

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import config
import database
import models
from errors import DuplicateEmail, UserNotFound
from rewards import RewardBreakdown, CARBON_SAVED_PLACES, INR_PLACES, quantize

logger = logging.getLogger(__name__)

USER_PROFILE_FIELDS = ("name", "vehicle_type", "rc_image_id")
REQUIRED_PROFILE_FIELDS = ("name", "vehicle_type")


class UserStats(NamedTuple):
    total_uploads: int
    total_km: int
    total_earned: Decimal
    total_carbon_saved: Decimal


def _check_fields(fields):
    unknown = set(fields) - set(USER_PROFILE_FIELDS)
    if unknown:
        raise ValueError(f"Cannot update user fields: {', '.join(sorted(unknown))}")
    nulls = [key for key in REQUIRED_PROFILE_FIELDS if key in fields and fields[key] is None]
    if nulls:
        raise ValueError(f"User fields cannot be null: {', '.join(nulls)}")


class Storage(ABC):

    @abstractmethod
    def get_user_by_id(self, user_id: int):
        ...

    @abstractmethod
    def get_user_by_email(self, email: str):
        ...

    @abstractmethod
    def create_user(self, name: str, vehicle_type: str, email: str, rc_image_id: Optional[str] = None):
        """Create a user with zero credits and balance. Raises DuplicateEmail."""

    @abstractmethod
    def update_user(self, user_id: int, **fields):
        """Merge profile fields into a user. Returns None if the user is missing."""

    @abstractmethod
    def create_upload(self, user_id: int, image_id: str, estimated_km: int, reward: RewardBreakdown):
        """Record an upload and credit its reward to the user. Raises UserNotFound."""

    @abstractmethod
    def get_upload_by_id(self, upload_id: int):
        ...

    @abstractmethod
    def get_uploads_by_user_id(self, user_id: int) -> list:
        """Uploads for a user, newest first."""

    @abstractmethod
    def get_user_stats(self, user_id: int) -> UserStats:
        ...


class SqlStorage(Storage):
    def __init__(self, db: Session):
        self.db = db

    def get_user_by_id(self, user_id: int) -> Optional[models.User]:
        return self.db.get(models.User, user_id)

    def get_user_by_email(self, email: str) -> Optional[models.User]:
        return self.db.query(models.User).filter(models.User.email == email).first()

    def create_user(self, name, vehicle_type, email, rc_image_id=None) -> models.User:
        if self.get_user_by_email(email) is not None:
            raise DuplicateEmail(email)

        user = models.User(
            name=name,
            email=email,
            vehicle_type=vehicle_type,
            rc_image_id=rc_image_id,
            carbon_credits=Decimal("0"),
            balance_inr=Decimal("0.00"),
        )
        try:
            self.db.add(user)
            self.db.commit()
        except IntegrityError:
            # Lost a race against another insert with the same email
            self.db.rollback()
            raise DuplicateEmail(email)
        self.db.refresh(user)
        logger.info("Created user %s (%s)", user.id, vehicle_type)
        return user

    def update_user(self, user_id, **fields) -> Optional[models.User]:
        _check_fields(fields)
        user = self.get_user_by_id(user_id)
        if user is None:
            return None
        for key, value in fields.items():
            setattr(user, key, value)
        self.db.commit()
        self.db.refresh(user)
        return user

    def create_upload(self, user_id, image_id, estimated_km, reward) -> models.Upload:
        try:
            # Increment in SQL so the database serializes concurrent writers
            result = self.db.execute(
                update(models.User)
                .where(models.User.id == user_id)
                .values(
                    balance_inr=models.User.balance_inr + reward.reward_inr,
                    carbon_credits=models.User.carbon_credits + reward.carbon_credits,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise UserNotFound(user_id)

            upload = models.Upload(
                user_id=user_id,
                image_id=image_id,
                estimated_km=estimated_km,
                carbon_saved_kg=reward.carbon_saved_kg,
                carbon_credits=reward.carbon_credits,
                reward_inr=reward.reward_inr,
            )
            self.db.add(upload)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(upload)
        return upload

    def get_upload_by_id(self, upload_id) -> Optional[models.Upload]:
        return self.db.get(models.Upload, upload_id)

    def get_uploads_by_user_id(self, user_id) -> List[models.Upload]:
        return (
            self.db.query(models.Upload)
            .filter(models.Upload.user_id == user_id)
            .order_by(models.Upload.created_at.desc(), models.Upload.id.desc())
            .all()
        )

    def get_user_stats(self, user_id) -> UserStats:
        count, km, earned, saved = (
            self.db.query(
                func.count(models.Upload.id),
                func.coalesce(func.sum(models.Upload.estimated_km), 0),
                func.coalesce(func.sum(models.Upload.reward_inr), 0),
                func.coalesce(func.sum(models.Upload.carbon_saved_kg), 0),
            )
            .filter(models.Upload.user_id == user_id)
            .one()
        )
        return UserStats(
            total_uploads=int(count),
            total_km=int(km),
            total_earned=quantize(Decimal(str(earned)), INR_PLACES),
            total_carbon_saved=quantize(Decimal(str(saved)), CARBON_SAVED_PLACES),
        )


@dataclass(frozen=True)
class UserRecord:
    id: int
    email: str
    name: str
    vehicle_type: str
    rc_image_id: Optional[str]
    carbon_credits: Decimal
    balance_inr: Decimal
    created_at: datetime


@dataclass(frozen=True)
class UploadRecord:
    id: int
    user_id: int
    image_id: str
    estimated_km: int
    carbon_saved_kg: Decimal
    carbon_credits: Decimal
    reward_inr: Decimal
    created_at: datetime


class MemoryStorage(Storage):
    """
    Process-local store. Records are immutable snapshots; every read and
    write runs under a single lock.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.reset()

    def reset(self):
        with self._lock:
            self._users = {}
            self._uploads = {}
            self._user_ids = itertools.count(1)
            self._upload_ids = itertools.count(1)

    def get_user_by_id(self, user_id):
        with self._lock:
            return self._users.get(user_id)

    def get_user_by_email(self, email):
        with self._lock:
            return self._find_by_email(email)

    def _find_by_email(self, email):
        return next((u for u in self._users.values() if u.email == email), None)

    def create_user(self, name, vehicle_type, email, rc_image_id=None):
        with self._lock:
            if self._find_by_email(email) is not None:
                raise DuplicateEmail(email)
            user = UserRecord(
                id=next(self._user_ids),
                email=email,
                name=name,
                vehicle_type=vehicle_type,
                rc_image_id=rc_image_id,
                carbon_credits=Decimal("0.000000"),
                balance_inr=Decimal("0.00"),
                created_at=models.utcnow(),
            )
            self._users[user.id] = user
        logger.info("Created user %s (%s)", user.id, vehicle_type)
        return user

    def update_user(self, user_id, **fields):
        _check_fields(fields)
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            user = replace(user, **fields)
            self._users[user_id] = user
            return user

    def create_upload(self, user_id, image_id, estimated_km, reward):
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise UserNotFound(user_id)
            upload = UploadRecord(
                id=next(self._upload_ids),
                user_id=user_id,
                image_id=image_id,
                estimated_km=estimated_km,
                carbon_saved_kg=reward.carbon_saved_kg,
                carbon_credits=reward.carbon_credits,
                reward_inr=reward.reward_inr,
                created_at=models.utcnow(),
            )
            self._uploads[upload.id] = upload
            self._users[user_id] = replace(
                user,
                carbon_credits=user.carbon_credits + reward.carbon_credits,
                balance_inr=user.balance_inr + reward.reward_inr,
            )
            return upload

    def get_upload_by_id(self, upload_id):
        with self._lock:
            return self._uploads.get(upload_id)

    def get_uploads_by_user_id(self, user_id):
        with self._lock:
            uploads = [u for u in self._uploads.values() if u.user_id == user_id]
        return sorted(uploads, key=lambda u: (u.created_at, u.id), reverse=True)

    def get_user_stats(self, user_id):
        uploads = self.get_uploads_by_user_id(user_id)
        return UserStats(
            total_uploads=len(uploads),
            total_km=sum(u.estimated_km for u in uploads),
            total_earned=sum((u.reward_inr for u in uploads), Decimal("0.00")),
            total_carbon_saved=sum((u.carbon_saved_kg for u in uploads), Decimal("0.000")),
        )


_memory_storage = None


def get_memory_storage() -> MemoryStorage:
    global _memory_storage
    if _memory_storage is None:
        _memory_storage = MemoryStorage()
    return _memory_storage


def get_storage():
    """FastAPI dependency yielding the configured storage backend."""
    if config.STORAGE_BACKEND == "memory":
        yield get_memory_storage()
        return
    if config.STORAGE_BACKEND != "sql":
        raise ValueError(f"Unknown STORAGE_BACKEND {config.STORAGE_BACKEND!r}")

    db = database.SessionLocal()
    try:
        yield SqlStorage(db)
    finally:
        db.close()
