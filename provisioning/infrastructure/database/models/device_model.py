"""
SQLAlchemy models for device records and the serial counter.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class DeviceRecordModel(Base):
    """
    One row per registered device.

    allocated_id is the primary key, so a generated id that collides
    with an existing device fails the insert and is regenerated.
    dedup_key is unique, which closes the check-then-insert race
    between processes. Frame fields are unbounded text since their
    length is limited only by the line length of the gateway.
    """

    __tablename__ = "devices"

    allocated_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    dedup_key: Mapped[str] = mapped_column(Text, nullable=False, unique=True, index=True)
    serial_number: Mapped[str] = mapped_column(String(32), nullable=False)
    registered_at_millis: Mapped[int] = mapped_column(BigInteger, nullable=False)

    mac_id: Mapped[str] = mapped_column(Text, nullable=False)
    device_type: Mapped[str] = mapped_column(Text, nullable=False)
    switch_count: Mapped[str] = mapped_column(Text, nullable=False)
    software_version: Mapped[str] = mapped_column(Text, nullable=False)
    hardware_version: Mapped[str] = mapped_column(Text, nullable=False)
    default_device_id: Mapped[str] = mapped_column(Text, nullable=False)

    peer_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<DeviceRecordModel(id={self.allocated_id}, serial={self.serial_number})>"


class CounterModel(Base):
    """Named monotonically increasing counter."""

    __tablename__ = "counters"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<CounterModel(name={self.name}, value={self.value})>"
