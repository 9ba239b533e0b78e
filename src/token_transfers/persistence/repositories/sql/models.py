# -*- coding: utf-8 -*-
"""SQLAlchemy tables for transfer attempts.

transfer_products holds the per-product allocation counter (latest_attempt);
create_attempt advances it with a compare-and-swap UPDATE. The composite
primary key on transfer_attempts rejects a duplicate number from any writer.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class TransferProductModel(Base):
    __tablename__ = "transfer_products"

    product_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    latest_attempt: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class TransferAttemptModel(Base):
    __tablename__ = "transfer_attempts"

    product_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    attempt: Mapped[int] = mapped_column(Integer, primary_key=True)

    order_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    owner_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)

    mint_address: Mapped[str] = mapped_column(String(44), index=True)
    from_address: Mapped[str] = mapped_column(String(44), index=True)
    to_address: Mapped[str] = mapped_column(String(44), index=True)

    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    transferred_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    status: Mapped[str] = mapped_column(String(16), index=True)
    error_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True, index=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tx_signature: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    version: Mapped[int] = mapped_column(Integer, default=1)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
