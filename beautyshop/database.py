from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from beautyshop.core import config


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(
    config.DATABASE_URL,
    echo=config.DATABASE_ECHO,
    **_engine_options(config.DATABASE_URL),
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_appointment_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_appointment_schema(bind=None) -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked and bind is None:
        return

    with _schema_lock:
        if _appointment_schema_checked and bind is None:
            return

        target = bind or engine
        inspector = inspect(target)

        if 'appointments' not in inspector.get_table_names():
            if bind is None:
                _appointment_schema_checked = True
            return

        with target.begin() as connection:
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointments_owner_time_range '
                    'ON appointments(owner_id, start_time, end_time)'
                )
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_owner_status ON appointments(owner_id, status)')
            )

        if bind is None:
            _appointment_schema_checked = True
