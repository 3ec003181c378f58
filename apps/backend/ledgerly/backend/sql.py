from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Mapping, Optional, Sequence

from sqlalchemy import and_, case, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .. import models
from ..core.database import SessionLocal
from ..core.logging_config import get_logger
from ..errors import BackendError, ConstraintViolationError
from .base import Filters, Row

logger = get_logger(__name__)

# Writable tables exposed to the store
TABLES: dict[str, type[models.Base]] = {
    "accounts": models.Account,
    "transactions": models.Transaction,
    "categories": models.Category,
    "purchases": models.Purchase,
    "purchase_categories": models.PurchaseCategory,
    "lend_borrow": models.LendBorrow,
    "lend_borrow_returns": models.LendBorrowReturn,
    "donation_saving_records": models.DonationSavingRecord,
    "savings_goals": models.SavingsGoal,
    "dps_transfers": models.DpsTransfer,
    "activity_history": models.ActivityHistory,
}

ACCOUNT_BALANCES_VIEW = "account_balances"


def _wrap(exc: SQLAlchemyError) -> BackendError:
    if isinstance(exc, IntegrityError):
        return ConstraintViolationError(str(exc.orig))
    return BackendError(str(exc))


def _model_for(table: str) -> type[models.Base]:
    try:
        return TABLES[table]
    except KeyError:
        raise BackendError(f"Unknown table: {table}") from None


def _columns(model: type[models.Base]) -> set[str]:
    return {col.key for col in model.__mapper__.column_attrs}


def _to_row(obj: models.Base) -> Row:
    return {col.key: getattr(obj, col.key) for col in obj.__mapper__.column_attrs}


def _conditions(model: type[models.Base], filters: Optional[Filters]) -> list[Any]:
    conds: list[Any] = []
    if not filters:
        return conds
    allowed = _columns(model)
    for key, value in filters.items():
        if key not in allowed:
            raise BackendError(f"Unknown column for {model.__tablename__}: {key}")
        column = getattr(model, key)
        if value is None:
            conds.append(column.is_(None))
        elif isinstance(value, (list, tuple, set, frozenset)):
            conds.append(column.in_(list(value)))
        else:
            conds.append(column == value)
    return conds


def _ordering(model: type[models.Base], order_by: Sequence[str]) -> list[Any]:
    clauses: list[Any] = []
    allowed = _columns(model)
    for key in order_by:
        descending = key.startswith("-")
        name = key.lstrip("-")
        if name not in allowed:
            raise BackendError(f"Unknown column for {model.__tablename__}: {name}")
        column = getattr(model, name)
        clauses.append(column.desc() if descending else column.asc())
    # Stable tie-break so snapshots compare equal across fetches
    clauses.append(model.id.asc())
    return clauses


def _check_values(model: type[models.Base], values: Mapping[str, Any]) -> dict[str, Any]:
    unknown = set(values) - _columns(model)
    if unknown:
        raise BackendError(f"Unknown column(s) for {model.__tablename__}: {', '.join(sorted(unknown))}")
    # Ownership and identity are never caller-controlled
    return {k: v for k, v in values.items() if k not in ("id", "user_id")}


class SqlTableBackend:
    """SQLAlchemy implementation of :class:`ledgerly.backend.base.TableBackend`."""

    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory
        self._active: ContextVar[Optional[Session]] = ContextVar(f"ledgerly_uow_{id(self)}", default=None)

    # ---- unit of work ------------------------------------------------------

    @contextmanager
    def atomic(self) -> Iterator[None]:
        if self._active.get() is not None:
            # Nested blocks join the enclosing unit of work
            yield
            return
        session = self._session_factory()
        token = self._active.set(session)
        try:
            yield
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.warning("Unit of work rolled back: %s", exc)
            raise _wrap(exc) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            self._active.reset(token)
            session.close()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        shared = self._active.get()
        if shared is not None:
            try:
                yield shared
                shared.flush()
            except SQLAlchemyError as exc:
                raise _wrap(exc) from exc
            return
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise _wrap(exc) from exc
        finally:
            session.close()

    # ---- table operations --------------------------------------------------

    def select(
        self,
        table: str,
        user_id: int,
        filters: Optional[Filters] = None,
        order_by: Sequence[str] = (),
    ) -> list[Row]:
        if table == ACCOUNT_BALANCES_VIEW:
            return self._select_balances(user_id, filters, order_by)
        model = _model_for(table)
        stmt = (
            select(model)
            .where(model.user_id == user_id, *_conditions(model, filters))
            .order_by(*_ordering(model, order_by))
            .execution_options(populate_existing=True)
        )
        with self._session() as db:
            return [_to_row(obj) for obj in db.scalars(stmt).all()]

    def insert(self, table: str, user_id: int, values: Mapping[str, Any]) -> Row:
        model = _model_for(table)
        obj = model(**_check_values(model, values), user_id=user_id)
        with self._session() as db:
            db.add(obj)
            db.flush()
            row = _to_row(obj)
        logger.debug("Inserted %s row", table, extra={"table": table, "row_id": row["id"]})
        return row

    def update(self, table: str, user_id: int, filters: Filters, values: Mapping[str, Any]) -> list[Row]:
        model = _model_for(table)
        payload = _check_values(model, values)
        stmt = select(model).where(model.user_id == user_id, *_conditions(model, filters)).execution_options(
            populate_existing=True
        )
        with self._session() as db:
            objs = db.scalars(stmt).all()
            for obj in objs:
                for key, value in payload.items():
                    setattr(obj, key, value)
            db.flush()
            return [_to_row(obj) for obj in objs]

    def delete(self, table: str, user_id: int, filters: Filters) -> int:
        model = _model_for(table)
        stmt = select(model).where(model.user_id == user_id, *_conditions(model, filters))
        with self._session() as db:
            objs = db.scalars(stmt).all()
            for obj in objs:
                db.delete(obj)
            db.flush()
        if objs:
            logger.debug("Deleted %d %s row(s)", len(objs), table)
        return len(objs)

    # ---- account_balances view ---------------------------------------------

    def _select_balances(self, user_id: int, filters: Optional[Filters], order_by: Sequence[str]) -> list[Row]:
        txn = models.Transaction
        signed = case(
            (txn.type == models.TxnType.INCOME, txn.amount),
            else_=-txn.amount,
        )
        totals = (
            select(txn.account_id.label("account_id"), func.sum(signed).label("net"))
            .where(txn.user_id == user_id)
            .group_by(txn.account_id)
            .subquery()
        )
        acct = models.Account
        stmt = (
            select(acct, func.coalesce(totals.c.net, 0))
            .outerjoin(totals, totals.c.account_id == acct.id)
            .where(and_(acct.user_id == user_id, *_conditions(acct, filters)))
            .order_by(*_ordering(acct, order_by))
            .execution_options(populate_existing=True)
        )
        with self._session() as db:
            rows = []
            for account, net in db.execute(stmt).all():
                row = _to_row(account)
                row["calculated_balance"] = float(account.initial_balance or 0) + float(net or 0)
                rows.append(row)
            return rows

    # ---- users ---------------------------------------------------------------

    def get_user(self, user_id: int) -> Optional[Row]:
        with self._session() as db:
            user = db.get(models.User, user_id)
            return _to_row(user) if user else None

    def find_user(self, email: str) -> Optional[Row]:
        stmt = select(models.User).where(models.User.email == email)
        with self._session() as db:
            user = db.scalars(stmt).first()
            return _to_row(user) if user else None

    def create_user(self, values: Mapping[str, Any]) -> Row:
        user = models.User(**_check_values(models.User, values))
        with self._session() as db:
            db.add(user)
            db.flush()
            return _to_row(user)
