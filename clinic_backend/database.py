import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from threading import Lock

from sqlalchemy import PrimaryKeyConstraint, UniqueConstraint, create_engine, event, inspect, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from clinic_backend.core import config

logger = logging.getLogger(__name__)


def build_engine(url: str, echo: bool = False) -> Engine:
    engine = create_engine(url, echo=echo)

    if engine.dialect.name == 'sqlite':
        # pysqlite defers BEGIN on its own, which breaks SAVEPOINT handling.
        @event.listens_for(engine, 'connect')
        def _on_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute('PRAGMA foreign_keys=ON')
            cursor.close()

        @event.listens_for(engine, 'begin')
        def _on_begin(connection):
            connection.exec_driver_sql('BEGIN')

    return engine


engine = build_engine(config.DATABASE_URL, echo=config.DATABASE_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_schedule_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Commit everything done in the block, or roll all of it back."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def _row_already_stored(db: Session, row) -> bool:
    """True when a stored row shares the primary key or a unique key with ``row``."""
    mapper = inspect(row).mapper
    for constraint in mapper.local_table.constraints:
        if not isinstance(constraint, (PrimaryKeyConstraint, UniqueConstraint)):
            continue

        columns = list(constraint.columns)
        values = [getattr(row, mapper.get_property_by_column(column).key) for column in columns]
        if not columns or any(value is None for value in values):
            continue

        match = select(*columns).where(*(column == value for column, value in zip(columns, values))).limit(1)
        if db.execute(match).first() is not None:
            return True
    return False


def insert_ignoring_duplicates(db: Session, rows: Iterable) -> list:
    """Insert each row under its own SAVEPOINT and return the rows that were written.

    A row that trips a primary key or unique constraint is already present,
    typically because a concurrent request inserted it first. Any other
    integrity failure, such as a missing foreign key target, is raised.
    """
    inserted = []
    for row in rows:
        try:
            with db.begin_nested():
                db.add(row)
        except IntegrityError:
            if not _row_already_stored(db, row):
                raise
            logger.info('%s row already present, skipping insert.', type(row).__name__)
            continue
        inserted.append(row)
    return inserted


def ensure_schedule_schema(bind: Engine | None = None) -> None:
    global _schedule_schema_checked

    if _schedule_schema_checked:
        return

    bind = bind or engine

    with _schema_lock:
        if _schedule_schema_checked:
            return

        table_names = inspect(bind).get_table_names()

        with bind.begin() as connection:
            if 'schedules' in table_names:
                connection.execute(
                    text(
                        'CREATE UNIQUE INDEX IF NOT EXISTS uq_schedules_bounds '
                        'ON schedules(start_date_time, end_date_time)'
                    )
                )
            if 'doctor_schedules' in table_names:
                connection.execute(
                    text(
                        'CREATE INDEX IF NOT EXISTS idx_doctor_schedules_doctor_booked '
                        'ON doctor_schedules(doctor_id, is_booked)'
                    )
                )
                connection.execute(
                    text(
                        'CREATE INDEX IF NOT EXISTS idx_doctor_schedules_schedule '
                        'ON doctor_schedules(schedule_id)'
                    )
                )

        _schedule_schema_checked = True
