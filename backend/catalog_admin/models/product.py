from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Float, ForeignKey, DateTime, text
from typing import Optional

from .authz import Base


class Product(Base):
    __tablename__ = 'product'
    prodcode: Mapped[str] = mapped_column(String(32), primary_key=True)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    unit: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))


class PriceHistory(Base):
    __tablename__ = 'pricehist'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    prodcode: Mapped[str] = mapped_column(ForeignKey('product.prodcode', ondelete='CASCADE'), nullable=False, index=True)
    effdate: Mapped[str] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    unitprice: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
