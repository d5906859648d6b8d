# heater_backend/data/sql_repository.py – SQLAlchemy (domyślnie SQLite)
from __future__ import annotations

from collections import defaultdict
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, Iterator, List, Optional
import logging
import time

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, create_engine, delete, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from heater_backend.core.state import (
    DayOperatingHours,
    ErrorDescriptor,
    HistoryPoint,
    LoggingState,
    StoredDataValue,
    ThresholdConfig,
    ValueDescriptor,
)


logger = logging.getLogger(__name__)

Base = declarative_base()


# MODELE

class ValueDescriptionRow(Base):
    __tablename__ = "value_descriptions"
    id = Column(Integer, primary_key=True, autoincrement=False)
    description = Column(String(100), nullable=False)
    unit = Column(String(50), nullable=True)
    is_logged = Column(Boolean, nullable=False, default=False)


class ErrorRow(Base):
    __tablename__ = "error_list"
    id = Column(Integer, primary_key=True, autoincrement=True)
    description = Column(String(100), nullable=True)


class DataValueRow(Base):
    __tablename__ = "data_values"
    id = Column(Integer, primary_key=True, autoincrement=True)
    value_type = Column(Integer, nullable=False, index=True)
    value = Column(Float, nullable=True)
    timestamp = Column(DateTime, nullable=False, index=True)


class NotifierConfigRow(Base):
    __tablename__ = "notifier_config"
    id = Column(Integer, primary_key=True, autoincrement=True)
    lower_threshold = Column(Float, nullable=False, default=0.0)


class NotifierMailRow(Base):
    __tablename__ = "notifier_mails"
    id = Column(Integer, primary_key=True, autoincrement=True)
    mail = Column(String(100), nullable=False)


def _to_dt(ts: float) -> datetime:
    # czas lokalny, bez strefy (tak jak w plikach historii sterownika)
    return datetime.fromtimestamp(ts)


def _from_dt(value: datetime) -> float:
    return value.timestamp()


class SqlHeaterRepository:
    def __init__(
        self,
        url: str = "sqlite:///heater.db",
        *,
        operating_hours_value_type_id: int = 30,
        create_schema: bool = True,
    ) -> None:
        engine_kwargs = {}
        if url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in url or url == "sqlite://":
                # jedna wspólna baza w pamięci dla wszystkich wątków
                engine_kwargs["poolclass"] = StaticPool

        self._engine = create_engine(url, **engine_kwargs)
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        self._operating_hours_id = int(operating_hours_value_type_id)

        if create_schema:
            Base.metadata.create_all(bind=self._engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self._engine.dispose()

    # ---------- katalogi ----------

    def load_value_descriptors(self) -> List[ValueDescriptor]:
        with self._session() as s:
            rows = s.execute(select(ValueDescriptionRow).order_by(ValueDescriptionRow.id)).scalars().all()
            return [
                ValueDescriptor(
                    id=int(r.id),
                    label=(r.description or "").strip(),
                    unit=(r.unit.strip() if r.unit else None),
                    is_logged=bool(r.is_logged),
                )
                for r in rows
            ]

    def seed_value_descriptors(self, descriptors: Iterable[ValueDescriptor]) -> int:
        """
        Wstawia brakujące opisy typów wartości (istniejących nie nadpisuje).
        Zwraca liczbę dodanych wpisów.
        """
        added = 0
        with self._session() as s:
            existing = set(s.execute(select(ValueDescriptionRow.id)).scalars().all())
            for d in descriptors:
                if d.id in existing:
                    continue
                s.add(
                    ValueDescriptionRow(
                        id=d.id,
                        description=d.label,
                        unit=d.unit,
                        is_logged=d.is_logged,
                    )
                )
                added += 1
        return added

    def load_error_descriptors(self) -> List[ErrorDescriptor]:
        with self._session() as s:
            rows = s.execute(select(ErrorRow).order_by(ErrorRow.id)).scalars().all()
            return [ErrorDescriptor(id=int(r.id), text=(r.description or "").strip()) for r in rows]

    def insert_error(self, text: str) -> int:
        with self._session() as s:
            row = ErrorRow(description=text)
            s.add(row)
            s.flush()
            new_id = int(row.id)
        logger.info("New error description stored: id=%s text=%r", new_id, text)
        return new_id

    def set_logging_state(self, states: Iterable[LoggingState]) -> None:
        with self._session() as s:
            for st in states:
                row = s.get(ValueDescriptionRow, st.value_type_id)
                if row is None:
                    raise KeyError(f"Unknown value type {st.value_type_id}")
                row.is_logged = bool(st.is_logged)

    # ---------- historia ----------

    def bulk_insert_history(self, points: Iterable[HistoryPoint]) -> bool:
        rows = [
            {"value_type": p.value_type_id, "value": float(p.value), "timestamp": _to_dt(p.timestamp)}
            for p in points
        ]
        if not rows:
            return False
        with self._session() as s:
            s.execute(DataValueRow.__table__.insert(), rows)
        return True

    def get_data_values(self, from_ts: float, to_ts: float) -> List[StoredDataValue]:
        with self._session() as s:
            q = (
                select(DataValueRow)
                .where(DataValueRow.timestamp >= _to_dt(from_ts))
                .where(DataValueRow.timestamp <= _to_dt(to_ts))
                .order_by(DataValueRow.timestamp, DataValueRow.id)
            )
            return [self._to_stored(r) for r in s.execute(q).scalars().all()]

    def get_latest_data_values(
        self,
        max_age_s: float = 7200.0,
        now: Optional[float] = None,
    ) -> Dict[int, StoredDataValue]:
        now = time.time() if now is None else float(now)
        result: Dict[int, StoredDataValue] = {}
        with self._session() as s:
            q = select(DataValueRow).where(DataValueRow.timestamp > _to_dt(now - max_age_s))
            for r in s.execute(q).scalars().all():
                item = self._to_stored(r)
                prev = result.get(item.value_type_id)
                if prev is None or prev.timestamp < item.timestamp:
                    result[item.value_type_id] = item
        return result

    def get_operating_hours(self, from_date: date, to_date: date) -> List[DayOperatingHours]:
        start = datetime.combine(from_date, datetime.min.time())
        end = datetime.combine(to_date + timedelta(days=1), datetime.min.time())

        per_day: Dict[date, List[float]] = defaultdict(list)
        with self._session() as s:
            q = (
                select(DataValueRow)
                .where(DataValueRow.value_type == self._operating_hours_id)
                .where(DataValueRow.timestamp >= start)
                .where(DataValueRow.timestamp < end)
                .where(DataValueRow.value.is_not(None))
            )
            for r in s.execute(q).scalars().all():
                per_day[r.timestamp.date()].append(float(r.value))

        out: List[DayOperatingHours] = []
        for day in sorted(per_day):
            values = per_day[day]
            mn, mx = min(values), max(values)
            out.append(DayOperatingHours(date=day.isoformat(), hours=mx - mn, min_hours=mn, max_hours=mx))
        return out

    @staticmethod
    def _to_stored(r: DataValueRow) -> StoredDataValue:
        return StoredDataValue(
            id=int(r.id),
            value_type_id=int(r.value_type),
            value=(float(r.value) if r.value is not None else None),
            timestamp=_from_dt(r.timestamp),
        )

    # ---------- powiadomienia ----------

    def load_threshold_config(self) -> ThresholdConfig:
        with self._session() as s:
            cfg_row = s.execute(select(NotifierConfigRow).order_by(NotifierConfigRow.id)).scalars().first()
            mails = s.execute(select(NotifierMailRow.mail).order_by(NotifierMailRow.id)).scalars().all()

        # adresy bez wiersza progu też są ważne, próg wtedy 0
        return ThresholdConfig(
            lower_threshold=float(cfg_row.lower_threshold) if cfg_row is not None else 0.0,
            recipients={m.strip() for m in mails if m and m.strip()},
        )

    def save_threshold_config(self, config: ThresholdConfig) -> None:
        with self._session() as s:
            cfg_row = s.execute(select(NotifierConfigRow).order_by(NotifierConfigRow.id)).scalars().first()
            if cfg_row is None:
                s.add(NotifierConfigRow(lower_threshold=float(config.lower_threshold)))
            else:
                cfg_row.lower_threshold = float(config.lower_threshold)

            s.execute(delete(NotifierMailRow))
            for mail in sorted(config.recipients):
                s.add(NotifierMailRow(mail=mail))
