"""SQLAlchemy storage backend for ShopForge."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Sequence

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
    select,
    text,
    update,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..enums import BannerStatus, Rarity
from .base import (
    AuditStore,
    BannerRecord,
    BannerStore,
    ItemRecord,
    ItemStore,
    RarityPriceRecord,
    RarityPriceStore,
    UniqueViolation,
)


class Base(DeclarativeBase):
    pass


class BannerTable(Base):
    __tablename__ = "shopforge_banners"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name_key: Mapped[str] = mapped_column(String(255), default="")
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[BannerStatus] = mapped_column(
        SAEnum(BannerStatus, native_enum=False, length=16), index=True
    )
    min_items: Mapped[int] = mapped_column(Integer, default=4)
    max_items: Mapped[int] = mapped_column(Integer, default=8)
    enable_precreate: Mapped[bool] = mapped_column(Boolean, default=False)
    precreate_before_end_days: Mapped[int] = mapped_column(Integer, default=2)
    random_items_again: Mapped[bool] = mapped_column(Boolean, default=False)
    predecessor_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    deleted_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class ItemTable(Base):
    __tablename__ = "shopforge_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    banner_id: Mapped[int] = mapped_column(Integer, ForeignKey("shopforge_banners.id"), index=True)
    catalog_id: Mapped[int] = mapped_column(Integer, index=True)
    price: Mapped[int] = mapped_column(Integer)
    purchase_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    purchased_count: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    deleted_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # One live item per catalog entity and banner; soft-deleted rows are exempt.
    __table_args__ = (
        Index(
            "uq_shopforge_items_banner_catalog_live",
            "banner_id",
            "catalog_id",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
    )


class RarityPriceEntryTable(Base):
    __tablename__ = "shopforge_rarity_prices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rarity: Mapped[Rarity] = mapped_column(SAEnum(Rarity, native_enum=False, length=16))
    price: Mapped[int] = mapped_column(Integer)
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    deleted_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "uq_shopforge_rarity_prices_rarity_live",
            "rarity",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
    )


class AuditTable(Base):
    __tablename__ = "shopforge_audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    action: Mapped[str] = mapped_column(String(128))
    payload: Mapped[dict] = mapped_column(JSON)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _banner_record(row: BannerTable) -> BannerRecord:
    return BannerRecord(
        banner_id=row.id,
        name_key=row.name_key,
        start_date=_aware(row.start_date),
        end_date=_aware(row.end_date),
        status=BannerStatus(row.status),
        min_items=row.min_items,
        max_items=row.max_items,
        enable_precreate=row.enable_precreate,
        precreate_before_end_days=row.precreate_before_end_days,
        random_items_again=row.random_items_again,
        predecessor_id=row.predecessor_id,
        created_by=row.created_by,
        updated_by=row.updated_by,
        deleted_by=row.deleted_by,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
        deleted_at=_aware(row.deleted_at),
    )


def _item_record(row: ItemTable) -> ItemRecord:
    return ItemRecord(
        item_id=row.id,
        banner_id=row.banner_id,
        catalog_id=row.catalog_id,
        price=row.price,
        purchase_limit=row.purchase_limit,
        purchased_count=row.purchased_count,
        is_active=row.is_active,
        created_by=row.created_by,
        updated_by=row.updated_by,
        deleted_by=row.deleted_by,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
        deleted_at=_aware(row.deleted_at),
    )


def _price_record(row: RarityPriceEntryTable) -> RarityPriceRecord:
    return RarityPriceRecord(
        entry_id=row.id,
        rarity=Rarity(row.rarity),
        price=row.price,
        created_by=row.created_by,
        updated_by=row.updated_by,
        deleted_by=row.deleted_by,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
        deleted_at=_aware(row.deleted_at),
    )


class AsyncSQLAlchemyStorage:
    """Bundle of async stores backed by SQLAlchemy."""

    def __init__(self, dsn: str, *, echo: bool = False) -> None:
        self._engine = create_async_engine(dsn, echo=echo)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)

    async def init_models(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self._engine.dispose()

    def banner_store(self) -> "AsyncSQLAlchemyBannerStore":
        return AsyncSQLAlchemyBannerStore(self._session_factory)

    def item_store(self) -> "AsyncSQLAlchemyItemStore":
        return AsyncSQLAlchemyItemStore(self._session_factory)

    def rarity_price_store(self) -> "AsyncSQLAlchemyRarityPriceStore":
        return AsyncSQLAlchemyRarityPriceStore(self._session_factory)

    def audit_store(self) -> "AsyncSQLAlchemyAuditStore":
        return AsyncSQLAlchemyAuditStore(self._session_factory)


class AsyncSQLAlchemyBannerStore(BannerStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, banner_id: int) -> BannerRecord | None:
        async with self._session_factory() as session:
            row = await session.get(BannerTable, banner_id)
            if row is None or row.deleted_at is not None:
                return None
            return _banner_record(row)

    async def add(self, record: BannerRecord) -> BannerRecord:
        now = _utcnow()
        async with self._session_factory() as session:
            row = BannerTable(
                name_key=record.name_key,
                start_date=record.start_date,
                end_date=record.end_date,
                status=record.status,
                min_items=record.min_items,
                max_items=record.max_items,
                enable_precreate=record.enable_precreate,
                precreate_before_end_days=record.precreate_before_end_days,
                random_items_again=record.random_items_again,
                predecessor_id=record.predecessor_id,
                created_by=record.created_by,
                updated_by=record.updated_by,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            await session.commit()
            return _banner_record(row)

    async def save(self, record: BannerRecord) -> BannerRecord:
        async with self._session_factory() as session:
            row = await session.get(BannerTable, record.banner_id)
            if row is None:
                raise KeyError(f"Banner {record.banner_id} not found")
            row.name_key = record.name_key
            row.start_date = record.start_date
            row.end_date = record.end_date
            row.status = record.status
            row.min_items = record.min_items
            row.max_items = record.max_items
            row.enable_precreate = record.enable_precreate
            row.precreate_before_end_days = record.precreate_before_end_days
            row.random_items_again = record.random_items_again
            row.predecessor_id = record.predecessor_id
            row.updated_by = record.updated_by
            row.updated_at = _utcnow()
            await session.commit()
            return _banner_record(row)

    async def soft_delete(self, banner_id: int, *, deleted_by: int | None = None) -> bool:
        async with self._session_factory() as session:
            stmt = (
                update(BannerTable)
                .where(BannerTable.id == banner_id, BannerTable.deleted_at.is_(None))
                .values(deleted_at=_utcnow(), deleted_by=deleted_by)
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount > 0

    async def list_by_status(
        self, status: BannerStatus, *, offset: int = 0, limit: int = 50
    ) -> Sequence[BannerRecord]:
        async with self._session_factory() as session:
            stmt = (
                select(BannerTable)
                .where(BannerTable.status == status, BannerTable.deleted_at.is_(None))
                .order_by(BannerTable.start_date.asc().nulls_first(), BannerTable.id)
                .offset(offset)
                .limit(limit)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [_banner_record(row) for row in rows]

    async def count_by_status(self, status: BannerStatus) -> int:
        async with self._session_factory() as session:
            stmt = select(func.count(BannerTable.id)).where(
                BannerTable.status == status, BannerTable.deleted_at.is_(None)
            )
            return int((await session.execute(stmt)).scalar_one())

    async def get_successor(self, banner_id: int) -> BannerRecord | None:
        async with self._session_factory() as session:
            stmt = (
                select(BannerTable)
                .where(BannerTable.predecessor_id == banner_id, BannerTable.deleted_at.is_(None))
                .limit(1)
            )
            row = (await session.execute(stmt)).scalars().first()
            return _banner_record(row) if row else None


class AsyncSQLAlchemyItemStore(ItemStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, item_id: int) -> ItemRecord | None:
        async with self._session_factory() as session:
            row = await session.get(ItemTable, item_id)
            if row is None or row.deleted_at is not None:
                return None
            return _item_record(row)

    async def count_live(self, banner_id: int) -> int:
        async with self._session_factory() as session:
            stmt = select(func.count(ItemTable.id)).where(
                ItemTable.banner_id == banner_id, ItemTable.deleted_at.is_(None)
            )
            return int((await session.execute(stmt)).scalar_one())

    async def live_catalog_ids(self, banner_id: int) -> set[int]:
        async with self._session_factory() as session:
            stmt = select(ItemTable.catalog_id).where(
                ItemTable.banner_id == banner_id, ItemTable.deleted_at.is_(None)
            )
            return set((await session.execute(stmt)).scalars().all())

    async def list_for_banner(self, banner_id: int) -> Sequence[ItemRecord]:
        async with self._session_factory() as session:
            stmt = (
                select(ItemTable)
                .where(ItemTable.banner_id == banner_id, ItemTable.deleted_at.is_(None))
                .order_by(ItemTable.id)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [_item_record(row) for row in rows]

    async def add_many(self, records: Sequence[ItemRecord]) -> list[ItemRecord]:
        now = _utcnow()
        rows = [
            ItemTable(
                banner_id=record.banner_id,
                catalog_id=record.catalog_id,
                price=record.price,
                purchase_limit=record.purchase_limit,
                purchased_count=record.purchased_count,
                is_active=record.is_active,
                created_by=record.created_by,
                updated_by=record.updated_by,
                created_at=now,
                updated_at=now,
            )
            for record in records
        ]
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    session.add_all(rows)
            except IntegrityError as exc:
                raise UniqueViolation(str(exc.orig)) from exc
            return [_item_record(row) for row in rows]

    async def save(self, record: ItemRecord) -> ItemRecord:
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    row = await session.get(ItemTable, record.item_id)
                    if row is None:
                        raise KeyError(f"Item {record.item_id} not found")
                    row.catalog_id = record.catalog_id
                    row.price = record.price
                    row.purchase_limit = record.purchase_limit
                    row.is_active = record.is_active
                    row.updated_by = record.updated_by
                    row.updated_at = _utcnow()
            except IntegrityError as exc:
                raise UniqueViolation(str(exc.orig)) from exc
            return _item_record(row)

    async def set_prices(
        self, banner_id: int, item_ids: Iterable[int], price: int, *, updated_by: int | None = None
    ) -> int:
        ids = list(item_ids)
        if not ids:
            return 0
        async with self._session_factory() as session:
            async with session.begin():
                stmt = (
                    update(ItemTable)
                    .where(
                        ItemTable.banner_id == banner_id,
                        ItemTable.id.in_(ids),
                        ItemTable.deleted_at.is_(None),
                    )
                    .values(price=price, updated_by=updated_by, updated_at=_utcnow())
                    .execution_options(synchronize_session=False)
                )
                result = await session.execute(stmt)
            return result.rowcount

    async def increment_purchased(self, item_id: int, quantity: int) -> ItemRecord | None:
        async with self._session_factory() as session:
            async with session.begin():
                stmt = (
                    update(ItemTable)
                    .where(ItemTable.id == item_id, ItemTable.deleted_at.is_(None))
                    .values(
                        purchased_count=ItemTable.purchased_count + quantity,
                        updated_at=_utcnow(),
                    )
                    .execution_options(synchronize_session=False)
                )
                result = await session.execute(stmt)
                if result.rowcount == 0:
                    return None
                row = await session.get(ItemTable, item_id)
                return _item_record(row)

    async def soft_delete(self, item_id: int, *, deleted_by: int | None = None) -> bool:
        async with self._session_factory() as session:
            stmt = (
                update(ItemTable)
                .where(ItemTable.id == item_id, ItemTable.deleted_at.is_(None))
                .values(deleted_at=_utcnow(), deleted_by=deleted_by)
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount > 0


class AsyncSQLAlchemyRarityPriceStore(RarityPriceStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, entry_id: int) -> RarityPriceRecord | None:
        async with self._session_factory() as session:
            row = await session.get(RarityPriceEntryTable, entry_id)
            if row is None or row.deleted_at is not None:
                return None
            return _price_record(row)

    async def get_by_rarity(self, rarity: Rarity) -> RarityPriceRecord | None:
        async with self._session_factory() as session:
            stmt = select(RarityPriceEntryTable).where(
                RarityPriceEntryTable.rarity == rarity, RarityPriceEntryTable.deleted_at.is_(None)
            )
            row = (await session.execute(stmt)).scalars().first()
            return _price_record(row) if row else None

    async def add(self, record: RarityPriceRecord) -> RarityPriceRecord:
        now = _utcnow()
        row = RarityPriceEntryTable(
            rarity=record.rarity,
            price=record.price,
            created_by=record.created_by,
            updated_by=record.updated_by,
            created_at=now,
            updated_at=now,
        )
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    session.add(row)
            except IntegrityError as exc:
                raise UniqueViolation(str(exc.orig)) from exc
            return _price_record(row)

    async def save(self, record: RarityPriceRecord) -> RarityPriceRecord:
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    row = await session.get(RarityPriceEntryTable, record.entry_id)
                    if row is None:
                        raise KeyError(f"Rarity price {record.entry_id} not found")
                    row.rarity = record.rarity
                    row.price = record.price
                    row.updated_by = record.updated_by
                    row.updated_at = _utcnow()
            except IntegrityError as exc:
                raise UniqueViolation(str(exc.orig)) from exc
            return _price_record(row)

    async def soft_delete(self, entry_id: int, *, deleted_by: int | None = None) -> bool:
        async with self._session_factory() as session:
            stmt = (
                update(RarityPriceEntryTable)
                .where(RarityPriceEntryTable.id == entry_id, RarityPriceEntryTable.deleted_at.is_(None))
                .values(deleted_at=_utcnow(), deleted_by=deleted_by)
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount > 0

    async def list_live(self) -> Sequence[RarityPriceRecord]:
        async with self._session_factory() as session:
            stmt = select(RarityPriceEntryTable).where(RarityPriceEntryTable.deleted_at.is_(None))
            rows = (await session.execute(stmt)).scalars().all()
            return sorted((_price_record(row) for row in rows), key=lambda r: r.rarity.rank)


class AsyncSQLAlchemyAuditStore(AuditStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add_entry(self, action: str, payload: dict) -> None:
        async with self._session_factory() as session:
            session.add(
                AuditTable(
                    created_at=_utcnow(),
                    action=action,
                    payload=dict(payload),
                )
            )
            await session.commit()
