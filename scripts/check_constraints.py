#!/usr/bin/env python3
"""Script to list the constraints and indexes guarding the reservations table."""
from sqlalchemy import create_engine, text

from fleetbook.config import get_settings


def check_constraints(database_url: str) -> None:
    engine = create_engine(database_url)
    with engine.connect() as conn:
        result = conn.execute(text("""
            SELECT conname, pg_get_constraintdef(oid)
            FROM pg_constraint
            WHERE conrelid = 'reservations'::regclass
            ORDER BY conname;
        """))
        print("Reservation constraints:")
        for row in result:
            print(f"  {row[0]}: {row[1]}")

        result = conn.execute(text("""
            SELECT indexname, indexdef
            FROM pg_indexes
            WHERE schemaname = 'public' AND tablename = 'reservations'
            ORDER BY indexname;
        """))
        print("\nReservation indexes:")
        for row in result:
            print(f"  {row[0]}: {row[1]}")


if __name__ == "__main__":
    check_constraints(get_settings().database_url)
