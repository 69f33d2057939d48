import enum
from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    Engine,
    Enum,
    Float,
    ForeignKey,
    String,
    create_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from bazaar.config import settings
from bazaar.market.types import OfferStatus, RequestStatus, utcnow


class Base(DeclarativeBase):
    pass


engine = create_engine(settings.database.url, echo=settings.database.echo)
SessionLocal = sessionmaker(bind=engine)


def _values(enum_cls: type[enum.Enum]) -> list[str]:
    # Persist the wire value ("pending-confirmation"), not the member name
    return [member.value for member in enum_cls]


class RequestRow(Base):
    __tablename__ = "requests"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    categories: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    status: Mapped[RequestStatus] = mapped_column(
        Enum(RequestStatus, values_callable=_values, native_enum=False),
        nullable=False,
        default=RequestStatus.ACTIVE,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    targeted_vendor_ids: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    source_product_id: Mapped[str | None] = mapped_column(String, nullable=True)
    source_product_title: Mapped[str | None] = mapped_column(String, nullable=True)


class OfferRow(Base):
    __tablename__ = "offers"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    request_id: Mapped[str] = mapped_column(
        String, ForeignKey("requests.id"), nullable=False, index=True
    )
    vendor_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    quoted_items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    total_price: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[OfferStatus] = mapped_column(
        Enum(OfferStatus, values_callable=_values, native_enum=False),
        nullable=False,
        default=OfferStatus.PENDING,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    notes: Mapped[str | None] = mapped_column(String, nullable=True)
    # Only ever set together with status=confirmed
    shared_contact_details: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True
    )


class BuyerRow(Base):
    __tablename__ = "buyers"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False)


class VendorRow(Base):
    __tablename__ = "vendors"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    business_name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    specialties: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)


class ProductRow(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    vendor_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(String, nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    image_url: Mapped[str | None] = mapped_column(String, nullable=True)
    for_rent: Mapped[bool] = mapped_column(default=False)
    rent_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    rent_period: Mapped[str | None] = mapped_column(String, nullable=True)


def init_db(bind: Engine | None = None) -> None:
    Base.metadata.create_all(bind=bind or engine)
