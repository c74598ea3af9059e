"""
User database model.

The column order is the record order exposed over HTTP.
"""
from sqlalchemy import Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class User(Base):
    """
    A row of the pre-existing ``users`` table.

    Ids are chosen by the caller, so the primary key never auto-increments.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    first_name: Mapped[str] = mapped_column(Text)
    last_name: Mapped[str] = mapped_column(Text)
    email: Mapped[str] = mapped_column(Text)


# Statements run on plain connections, so they are built against the table
users_table = User.__table__

USER_COLUMNS = (
    users_table.c.id,
    users_table.c.first_name,
    users_table.c.last_name,
    users_table.c.email,
)
