"""
Order repository: staging writes, silver promotion and the resume cursor.

Every public method runs in one session: commit on success, rollback and
re-raise on error.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, Sequence

from sqlalchemy import create_engine, delete, func, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from dln_indexer.dln_logging import get_logger
from dln_indexer.database.models import (
    Base,
    SilverOrder,
    SilverOrderStatus,
    SilverToken,
    StagingOrder,
)
from dln_indexer.scrapper.models import OrderInfoResult

logger = get_logger(__name__)

LAYERS = ("staging", "silver")
_KEY_CHUNK = 500


def _chunks(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


def _masked(url: str) -> str:
    return url.split("?")[0].split("//")[-1]


def _norm_status(status: str | None) -> str | None:
    return status.upper() if status else None


class OrderRepository:
    def __init__(self, database_url: str | None = None, *, engine: Engine | None = None) -> None:
        if engine is None:
            if not database_url:
                raise ValueError("database_url or engine is required")
            connect_args: dict[str, Any] = {}
            if database_url.startswith("sqlite"):
                connect_args["check_same_thread"] = False
            engine = create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)
        self.engine = engine
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_tables(self) -> None:
        """Create staging and silver tables if they do not exist. Safe on every startup."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("order_tables_ready", url=_masked(str(self.engine.url)))

    def _existing_keys(
        self,
        session: Session,
        model: Any,
        signatures: Iterable[str],
    ) -> set[tuple[str, int]]:
        keys: set[tuple[str, int]] = set()
        for chunk in _chunks(sorted(set(signatures)), _KEY_CHUNK):
            rows = session.execute(
                select(model.signature, model.order_index).where(model.signature.in_(chunk))
            )
            keys.update((sig, idx) for sig, idx in rows)
        return keys

    def save_batch(self, batch: Sequence[OrderInfoResult]) -> int:
        """
        Insert orders into staging. Rows whose (signature, order_index) is
        already stored are ignored. Returns the number of rows inserted.
        """
        if not batch:
            return 0
        try:
            with self._session_scope() as session:
                seen = self._existing_keys(session, StagingOrder, (o.signature for o in batch))
                rows = []
                for order in batch:
                    key = (order.signature, order.order_index)
                    if key in seen:
                        continue
                    seen.add(key)
                    row = order.to_dict()
                    row["status"] = order.status.upper()
                    row["token_symbol"] = order.token_symbol.upper()
                    rows.append(StagingOrder(**row))
                session.add_all(rows)
        except Exception as e:
            logger.exception("save_batch_failed", size=len(batch), error=str(e))
            raise
        logger.info("batch_saved_to_staging", received=len(batch), inserted=len(rows))
        return len(rows)

    def get_earliest_record(self, status: str | None = None) -> dict[str, Any] | None:
        """
        Oldest stored order (by block time), optionally for one status.

        Looks at both layers so the cursor survives staging cleanup.
        """
        status = _norm_status(status)
        with self._session_scope() as session:
            staging_q = select(StagingOrder).order_by(StagingOrder.timestamp.asc(), StagingOrder.id.asc())
            if status:
                staging_q = staging_q.where(StagingOrder.status == status)
            staging = session.execute(staging_q.limit(1)).scalars().first()

            silver_q = (
                select(SilverOrder, SilverOrderStatus.status)
                .join(SilverOrderStatus, SilverOrder.status_id == SilverOrderStatus.id)
                .order_by(SilverOrder.timestamp.asc(), SilverOrder.id.asc())
            )
            if status:
                silver_q = silver_q.where(SilverOrderStatus.status == status)
            silver_row = session.execute(silver_q.limit(1)).first()

            candidates: list[dict[str, Any]] = []
            if staging is not None:
                candidates.append(staging.to_dict())
            if silver_row is not None:
                order, order_status = silver_row
                candidates.append({
                    "signature": order.signature,
                    "order_index": order.order_index,
                    "order_id": order.order_id,
                    "status": order_status,
                    "timestamp": order.timestamp,
                })
            if not candidates:
                return None
            return min(candidates, key=lambda r: r["timestamp"])

    def clear_staging(self, older_than_days: int = 3) -> int:
        """Delete promoted staging rows added more than `older_than_days` ago."""
        cutoff = int(time.time()) - older_than_days * 86400
        with self._session_scope() as session:
            result = session.execute(
                delete(StagingOrder).where(
                    StagingOrder.is_processed.is_(True),
                    StagingOrder.added_at < cutoff,
                )
            )
            deleted = result.rowcount or 0
        logger.info("staging_cleared", deleted=deleted, older_than_days=older_than_days)
        return deleted

    def promote_staging_to_silver(self) -> int:
        """
        Move unprocessed staging rows into silver_orders, creating token and
        status lookup rows as needed. Returns the number of silver rows inserted.
        """
        try:
            with self._session_scope() as session:
                pending = session.execute(
                    select(StagingOrder)
                    .where(StagingOrder.is_processed.is_(False))
                    .order_by(StagingOrder.id.asc())
                ).scalars().all()
                if not pending:
                    return 0

                token_ids = self._ensure_tokens(session, pending)
                status_ids = self._ensure_statuses(session, pending)
                existing = self._existing_keys(session, SilverOrder, (r.signature for r in pending))

                inserted = 0
                for row in pending:
                    key = (row.signature, row.order_index)
                    if key not in existing:
                        existing.add(key)
                        session.add(SilverOrder(
                            signature=row.signature,
                            order_index=row.order_index,
                            order_id=row.order_id,
                            amount=row.amount,
                            percent_fee=row.percent_fee,
                            fixed_fee=row.fixed_fee,
                            token_id=token_ids[row.token_key],
                            status_id=status_ids[row.status],
                            timestamp=row.timestamp,
                        ))
                        inserted += 1
                session.execute(
                    update(StagingOrder)
                    .where(StagingOrder.id.in_([r.id for r in pending]))
                    .values(is_processed=True)
                )
        except Exception as e:
            logger.exception("promote_to_silver_failed", error=str(e))
            raise
        logger.info("staging_promoted_to_silver", processed=len(pending), inserted=inserted)
        return inserted

    def _ensure_tokens(self, session: Session, rows: Sequence[StagingOrder]) -> dict[str, int]:
        symbols: dict[str, str] = {}
        for row in rows:
            symbols.setdefault(row.token_key, row.token_symbol)
        ids = dict(session.execute(
            select(SilverToken.token_key, SilverToken.id).where(SilverToken.token_key.in_(list(symbols)))
        ).all())
        for key, symbol in symbols.items():
            if key not in ids:
                token = SilverToken(token_key=key, token_symbol=symbol)
                session.add(token)
                session.flush()
                ids[key] = token.id
        return ids

    def _ensure_statuses(self, session: Session, rows: Sequence[StagingOrder]) -> dict[str, int]:
        wanted = {row.status for row in rows}
        ids = dict(session.execute(
            select(SilverOrderStatus.status, SilverOrderStatus.id).where(SilverOrderStatus.status.in_(list(wanted)))
        ).all())
        for status in wanted - set(ids):
            row = SilverOrderStatus(status=status)
            session.add(row)
            session.flush()
            ids[status] = row.id
        return ids

    def count_orders(self, status: str | None = None, layer: str = "silver") -> int:
        if layer not in LAYERS:
            raise ValueError(f"layer must be one of {LAYERS}, got {layer!r}")
        status = _norm_status(status)
        with self._session_scope() as session:
            if layer == "staging":
                q = select(func.count(StagingOrder.id))
                if status:
                    q = q.where(StagingOrder.status == status)
            else:
                q = select(func.count(SilverOrder.id))
                if status:
                    q = q.join(SilverOrderStatus, SilverOrder.status_id == SilverOrderStatus.id).where(
                        SilverOrderStatus.status == status
                    )
            return int(session.execute(q).scalar_one())
