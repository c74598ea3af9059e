"""
User service containing the request handlers' database logic.

Each operation acquires the session guard, issues exactly one parameterized
statement inside a transaction and translates database failures into the
service's exception hierarchy.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator

from loguru import logger
from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import AsyncConnection

from app.core.database import SessionGuard, SessionGuardError
from app.users.models import USER_COLUMNS, users_table
from app.users.schemas import UserCreate, UserRead, UserUpdate

USER_CREATED = "Usuario creado con éxito"
USER_UPDATED = "Usuario actualizado con éxito"
USER_DELETED = "Usuario eliminado con éxito"


class UserServiceError(Exception):
    """Custom exception for user service errors."""
    pass


class UserNotFoundError(UserServiceError):
    """Raised when an update or delete matched no row."""
    pass


class UserConflictError(UserServiceError):
    """Raised when a statement violates a table constraint."""
    pass


class DatabaseUnavailableError(UserServiceError):
    """Raised when the database cannot be reached or no connection is free."""
    pass


def _describe(error: Exception) -> str:
    """Database error text without SQLAlchemy's statement and help-link noise."""
    if isinstance(error, DBAPIError) and error.orig is not None:
        return str(error.orig)
    return str(error)


def _translate(error: Exception, action: str) -> UserServiceError:
    message = f"Error al {action} usuario: {_describe(error)}"

    if isinstance(error, IntegrityError):
        return UserConflictError(message)
    if isinstance(error, (OperationalError, InterfaceError, SessionGuardError)):
        return DatabaseUnavailableError(message)
    if isinstance(error, DBAPIError) and error.connection_invalidated:
        return DatabaseUnavailableError(message)
    return UserServiceError(message)


class UserService:
    """
    Service for managing user records.

    Handles:
    - Creating users with caller-chosen ids
    - Listing and fetching users
    - Overwriting and deleting users by id
    """

    def __init__(self, guard: SessionGuard, report_missing_rows: bool = False):
        """
        Initialize the user service.

        Args:
            guard: Session guard lending the database connection
            report_missing_rows: Raise UserNotFoundError when update/delete hits no row
        """
        self.guard = guard
        self.report_missing_rows = report_missing_rows

    @asynccontextmanager
    async def _transaction(self, action: str) -> AsyncIterator[AsyncConnection]:
        """Hold the guard and a transaction, translating any database failure."""
        try:
            async with self.guard.acquire() as connection:
                async with connection.begin():
                    yield connection
        except (SQLAlchemyError, SessionGuardError) as e:
            error = _translate(e, action)
            logger.error("{} ({})", error, type(error).__name__)
            raise error from e

    def _check_affected(self, rowcount: int, user_id: int) -> None:
        if self.report_missing_rows and rowcount == 0:
            raise UserNotFoundError(f"Usuario no encontrado: {user_id}")

    async def create_user(self, user: UserCreate) -> str:
        """
        Insert a new user row with all four fields.

        Returns:
            Confirmation message
        """
        statement = insert(users_table).values(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
        )
        async with self._transaction("insertar") as connection:
            await connection.execute(statement)

        logger.info("Created user {}", user.id)
        return USER_CREATED

    async def list_users(self) -> list[UserRead]:
        """Return every user row. No ordering is guaranteed."""
        async with self._transaction("obtener") as connection:
            result = await connection.execute(select(*USER_COLUMNS))
            rows = result.all()

        return [UserRead.model_validate(row) for row in rows]

    async def get_user(self, user_id: int) -> UserRead | None:
        """Return the user with the given id, or None when absent."""
        statement = select(*USER_COLUMNS).where(users_table.c.id == user_id)
        async with self._transaction("obtener") as connection:
            result = await connection.execute(statement)
            row = result.one_or_none()

        if row is None:
            return None
        return UserRead.model_validate(row)

    async def update_user(self, user_id: int, user: UserUpdate) -> str:
        """
        Overwrite the three non-id fields of the user with ``user_id``.

        The id carried by ``user`` is ignored; the path id always wins.
        """
        statement = (
            update(users_table)
            .where(users_table.c.id == user_id)
            .values(
                first_name=user.first_name,
                last_name=user.last_name,
                email=user.email,
            )
        )
        async with self._transaction("actualizar") as connection:
            result = await connection.execute(statement)
            self._check_affected(result.rowcount, user_id)

        logger.info("Updated user {} ({} row(s))", user_id, result.rowcount)
        return USER_UPDATED

    async def delete_user(self, user_id: int) -> str:
        """Delete the user with ``user_id``. Missing ids are a no-op by default."""
        statement = delete(users_table).where(users_table.c.id == user_id)
        async with self._transaction("eliminar") as connection:
            result = await connection.execute(statement)
            self._check_affected(result.rowcount, user_id)

        logger.info("Deleted user {} ({} row(s))", user_id, result.rowcount)
        return USER_DELETED
