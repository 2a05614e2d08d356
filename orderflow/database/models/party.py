"""
Client and manufacturer models.

Manufacturers carry their ready-to-ship queue configuration: the window in
days and the queue label in English and Chinese.
"""

from typing import Optional

from sqlalchemy import CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from orderflow.database.base import BaseModel, create_table_args


class Client(BaseModel):
    """Client company orders are placed for."""

    __tablename__ = "clients"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Client display name, first letters prefix order numbers",
    )

    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    __table_args__ = create_table_args(comment="Client companies")


class Manufacturer(BaseModel):
    """Manufacturer producing order lines."""

    __tablename__ = "manufacturers"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    ship_queue_days: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        default=3,
        comment="Days ahead of the estimated ship date a line enters the ship queue",
    )

    ship_queue_name: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Ship queue tab label",
    )

    ship_queue_name_zh: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Ship queue tab label (Chinese)",
    )

    __table_args__ = create_table_args(
        CheckConstraint(
            "ship_queue_days IS NULL OR ship_queue_days >= 0",
            name="ck_manufacturers_ship_queue_days_non_negative",
        ),
        comment="Manufacturers with ship queue settings",
    )
