from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from agenda.core import config


engine = create_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_appointment_schema_checked = False
_blocked_time_schema_checked = False


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('location_id', 'ALTER TABLE appointments ADD COLUMN location_id INTEGER'),
            ('is_recurring', 'ALTER TABLE appointments ADD COLUMN is_recurring BOOLEAN DEFAULT FALSE'),
            ('recurrence_pattern', 'ALTER TABLE appointments ADD COLUMN recurrence_pattern VARCHAR'),
            ('updated_at', 'ALTER TABLE appointments ADD COLUMN updated_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_professional_start_active '
                    "ON appointments(professional_id, start_time) WHERE status <> 'cancelled'"
                )
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_professional_start ON appointments(professional_id, start_time)')
            )

        _appointment_schema_checked = True


def ensure_blocked_time_schema() -> None:
    global _blocked_time_schema_checked

    if _blocked_time_schema_checked:
        return

    with _schema_lock:
        if _blocked_time_schema_checked:
            return

        inspector = inspect(engine)

        if 'blocked_times' not in inspector.get_table_names():
            _blocked_time_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('blocked_times')}

        with engine.begin() as connection:
            if 'reason' not in existing_columns:
                connection.execute(text('ALTER TABLE blocked_times ADD COLUMN reason VARCHAR'))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_blocked_times_professional_start ON blocked_times(professional_id, start_time)')
            )

        _blocked_time_schema_checked = True
