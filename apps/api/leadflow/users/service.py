from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from leadflow.core.database import store_errors
from leadflow.errors import NotFoundError, ValidationError
from leadflow.users.cache import UserCache, user_cache
from leadflow.users.models import AppUser
from leadflow.users.schemas import UNKNOWN_USER, UserCreate, UserRead, UserUpdate


@dataclass(slots=True)
class UserService:
    cache: UserCache = user_cache

    def create_user(self, session: Session, dto: UserCreate) -> UserRead:
        user = AppUser(**dto.model_dump(mode="python"))
        session.add(user)
        try:
            with store_errors(session, "create_user"):
                session.commit()
        except IntegrityError:
            raise ValidationError("username already exists", details={"username": dto.username})
        return UserRead.model_validate(user)

    def get_user(self, session: Session, user_id: uuid.UUID | str) -> UserRead | None:
        def load(key: uuid.UUID) -> UserRead | None:
            with store_errors(session, "get_user"):
                row = session.get(AppUser, key)
                return UserRead.model_validate(row) if row is not None else None

        return self.cache.get(user_id, load)

    def display_name(self, session: Session, user_id: uuid.UUID | str) -> str:
        user = self.get_user(session, user_id)
        return user.resolved_display_name if user is not None else UNKNOWN_USER

    def list_users(self, session: Session, *, active: bool | None = None, role: str | None = None) -> list[UserRead]:
        stmt = select(AppUser)
        if active is not None:
            stmt = stmt.where(AppUser.active.is_(active))
        if role is not None:
            stmt = stmt.where(AppUser.role == role)
        with store_errors(session, "list_users"):
            rows = session.scalars(stmt.order_by(AppUser.username.asc())).all()
            return [UserRead.model_validate(row) for row in rows]

    def update_user(self, session: Session, user_id: uuid.UUID, dto: UserUpdate) -> UserRead:
        with store_errors(session, "update_user"):
            user = session.get(AppUser, user_id)
            if user is None:
                raise NotFoundError("user", user_id)
            for key, value in dto.model_dump(exclude_unset=True).items():
                setattr(user, key, value)
            session.commit()
        self.cache.invalidate(user_id)
        return UserRead.model_validate(user)

    def delete_user(self, session: Session, user_id: uuid.UUID) -> None:
        with store_errors(session, "delete_user"):
            user = session.get(AppUser, user_id)
            if user is None:
                raise NotFoundError("user", user_id)
            session.delete(user)
            session.commit()
        self.cache.invalidate(user_id)


user_service = UserService()
