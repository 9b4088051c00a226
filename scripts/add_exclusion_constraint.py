#!/usr/bin/env python3
"""Install the reservation overlap constraint on an existing PostgreSQL database."""
from sqlalchemy import create_engine, text

from fleetbook.config import get_settings
from fleetbook.models import EXCLUSION_CONSTRAINT_NAME, POSTGRES_EXCLUSION_DDL


def add_exclusion_constraint(database_url: str) -> None:
    engine = create_engine(database_url)
    with engine.begin() as conn:
        conn.execute(text("CREATE EXTENSION IF NOT EXISTS btree_gist;"))
        present = conn.execute(
            text("SELECT 1 FROM pg_constraint WHERE conname = :name"),
            {"name": EXCLUSION_CONSTRAINT_NAME},
        ).first()
        if present:
            print(f"Constraint {EXCLUSION_CONSTRAINT_NAME} already present.")
            return
        conn.execute(text(POSTGRES_EXCLUSION_DDL))
        conn.execute(text("CREATE INDEX IF NOT EXISTS idx_reservations_car_status ON reservations (car_id, status);"))
        print(f"Constraint {EXCLUSION_CONSTRAINT_NAME} added successfully.")


if __name__ == "__main__":
    add_exclusion_constraint(get_settings().database_url)
