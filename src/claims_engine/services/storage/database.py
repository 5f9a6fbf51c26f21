"""
SQLAlchemy Claim Store.

Each transaction is one AsyncSession inside ``session.begin()``:
- claim and utilization reads ``for_update`` use SELECT ... FOR UPDATE
- both tables carry a ``version_id_col``; a lost race surfaces as
  StaleDataError and is re-raised as ConcurrencyConflictError
- utilization rows are created with INSERT ... ON CONFLICT DO NOTHING and
  then locked, so two first-time reservations cannot both insert

Source: https://docs.sqlalchemy.org/en/20/orm/versioning.html
Source: https://docs.sqlalchemy.org/en/20/orm/queryguide/query.html#sqlalchemy.orm.Query.with_for_update
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import AsyncIterator, Optional
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from claims_engine.core.exceptions import ConcurrencyConflictError
from claims_engine.models import (
    BenefitUtilization,
    Claim,
    ClaimAuditTrail,
    ClaimProcedureItem,
)
from claims_engine.schemas import (
    AuditTrailEntry,
    BenefitUtilizationRecord,
    ClaimFilter,
    ClaimRecord,
)
from claims_engine.services.storage.base import ClaimStore, StoreTransaction
from claims_engine.utils.logging import get_logger

logger = get_logger(__name__)

# Fields owned by the row itself rather than by engine transitions
_CLAIM_IMMUTABLE_FIELDS = {"id", "version", "procedure_items"}

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class DatabaseStoreTransaction(StoreTransaction):
    """Unit of work bound to one AsyncSession."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._claims: dict[UUID, Claim] = {}
        self._utilization: dict[tuple[UUID, UUID], BenefitUtilization] = {}

    async def _flush(self, claim_id: Optional[UUID] = None) -> None:
        try:
            await self._session.flush()
        except StaleDataError as e:
            raise ConcurrencyConflictError(
                "Row was modified by another transaction", claim_id=claim_id
            ) from e

    # =========================================================================
    # Claims
    # =========================================================================

    async def get_claim(
        self, claim_id: UUID, for_update: bool = False
    ) -> Optional[ClaimRecord]:
        stmt = (
            select(Claim)
            .where(Claim.id == claim_id)
            .options(selectinload(Claim.procedure_items))
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            return None
        self._claims[claim_id] = row
        return ClaimRecord.model_validate(row)

    async def add_claim(self, claim: ClaimRecord) -> ClaimRecord:
        # version is assigned by the mapper's version counter
        row = Claim(**claim.model_dump(exclude=_CLAIM_IMMUTABLE_FIELDS - {"id"}))
        row.procedure_items = [
            ClaimProcedureItem(**item.model_dump()) for item in claim.procedure_items
        ]
        self._session.add(row)
        await self._flush(claim.id)
        self._claims[row.id] = row
        return ClaimRecord.model_validate(row)

    async def update_claim(self, claim: ClaimRecord) -> ClaimRecord:
        row = self._claims.get(claim.id)
        if row is None:
            await self.get_claim(claim.id, for_update=True)
            row = self._claims.get(claim.id)
        if row is None or row.version != claim.version:
            raise ConcurrencyConflictError(
                f"Claim {claim.id} was modified concurrently", claim_id=claim.id
            )

        for field_name, value in claim.model_dump(exclude=_CLAIM_IMMUTABLE_FIELDS).items():
            setattr(row, field_name, value)
        # Every transition bumps the version, even a no-op field write
        if not self._session.is_modified(row):
            flag_modified(row, "status")

        await self._flush(claim.id)
        return ClaimRecord.model_validate(row)

    # =========================================================================
    # Utilization
    # =========================================================================

    async def get_utilization(
        self, member_id: UUID, benefit_id: UUID, for_update: bool = False
    ) -> Optional[BenefitUtilizationRecord]:
        stmt = select(BenefitUtilization).where(
            BenefitUtilization.member_id == member_id,
            BenefitUtilization.benefit_id == benefit_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            return None
        self._utilization[(member_id, benefit_id)] = row
        return BenefitUtilizationRecord.model_validate(row)

    async def get_or_create_utilization(
        self, member_id: UUID, benefit_id: UUID
    ) -> BenefitUtilizationRecord:
        connection = await self._session.connection()
        dialect_name = connection.dialect.name
        insert = _UPSERT_DIALECTS.get(dialect_name)
        if insert is None:
            raise NotImplementedError(
                f"Utilization upsert is not supported on dialect '{dialect_name}'"
            )

        stmt = (
            insert(BenefitUtilization)
            .values(
                id=uuid4(),
                member_id=member_id,
                benefit_id=benefit_id,
                used_amount=Decimal("0"),
                reserved_amount=Decimal("0"),
                version=1,
            )
            .on_conflict_do_nothing(index_elements=["member_id", "benefit_id"])
        )
        await self._session.execute(stmt)

        record = await self.get_utilization(member_id, benefit_id, for_update=True)
        if record is None:
            raise ConcurrencyConflictError(
                f"Utilization row {member_id}/{benefit_id} vanished after upsert",
                guard="utilization_version",
            )
        return record

    async def save_utilization(
        self, record: BenefitUtilizationRecord
    ) -> BenefitUtilizationRecord:
        key = (record.member_id, record.benefit_id)
        row = self._utilization.get(key)
        if row is None or row.version != record.version:
            raise ConcurrencyConflictError(
                f"Utilization row {record.member_id}/{record.benefit_id} "
                "was modified concurrently",
                guard="utilization_version",
            )

        row.limit_amount = record.limit_amount
        row.used_amount = record.used_amount
        row.reserved_amount = record.reserved_amount
        row.last_updated = datetime.now(timezone.utc)

        await self._flush()
        return BenefitUtilizationRecord.model_validate(row)

    # =========================================================================
    # Audit
    # =========================================================================

    async def append_audit(self, entry: AuditTrailEntry) -> None:
        data = entry.model_dump(exclude={"id", "details"})
        data["details"] = entry.model_dump(mode="json", include={"details"})["details"]
        self._session.add(ClaimAuditTrail(**data))
        await self._flush(entry.claim_id)


class DatabaseClaimStore(ClaimStore):
    """
    PostgreSQL (asyncpg) claim store; SQLite (aiosqlite) in tests.

    SQLite has no row locks, so it serializes writers at the database level
    instead; the version columns still detect lost updates.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    @property
    def backend_name(self) -> str:
        return "database"

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreTransaction]:
        async with self._session_maker() as session:
            try:
                async with session.begin():
                    yield DatabaseStoreTransaction(session)
            except StaleDataError as e:
                logger.warning(f"Transaction rolled back on version conflict: {e}")
                raise ConcurrencyConflictError(
                    "Row was modified by another transaction"
                ) from e

    async def get_claim(self, claim_id: UUID) -> Optional[ClaimRecord]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(Claim)
                .where(Claim.id == claim_id)
                .options(selectinload(Claim.procedure_items))
            )
            row = result.scalar_one_or_none()
            return ClaimRecord.model_validate(row) if row else None

    async def list_claims(
        self, claim_filter: Optional[ClaimFilter] = None
    ) -> list[ClaimRecord]:
        stmt = select(Claim).options(selectinload(Claim.procedure_items))
        if claim_filter is not None:
            for field_name, value in claim_filter.model_dump(exclude_none=True).items():
                stmt = stmt.where(getattr(Claim, field_name) == value)
        stmt = stmt.order_by(Claim.claim_date)

        async with self._session_maker() as session:
            result = await session.execute(stmt)
            return [ClaimRecord.model_validate(row) for row in result.scalars().all()]

    async def list_utilization(self, member_id: UUID) -> list[BenefitUtilizationRecord]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(BenefitUtilization)
                .where(BenefitUtilization.member_id == member_id)
                .order_by(BenefitUtilization.created_at)
            )
            return [
                BenefitUtilizationRecord.model_validate(row)
                for row in result.scalars().all()
            ]

    async def list_audit(self, claim_id: UUID) -> list[AuditTrailEntry]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(ClaimAuditTrail)
                .where(ClaimAuditTrail.claim_id == claim_id)
                .order_by(ClaimAuditTrail.id)
            )
            return [AuditTrailEntry.model_validate(row) for row in result.scalars().all()]
