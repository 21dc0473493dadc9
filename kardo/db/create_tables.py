"""Create (or rebuild) the Kardo schema: ``python -m kardo.db.create_tables [--drop]``."""
from __future__ import annotations

import argparse

from sqlalchemy.exc import SQLAlchemyError

from . import models  # noqa: F401  # registers the tables on Base.metadata
from .session import Base, get_engine


def create_all() -> None:
    Base.metadata.create_all(bind=get_engine())


def drop_all() -> None:
    Base.metadata.drop_all(bind=get_engine())


def main() -> None:
    ap = argparse.ArgumentParser(description="Create the Kardo database tables")
    ap.add_argument("--drop", action="store_true", help="Drop every table first (destroys data)")
    args = ap.parse_args()
    try:
        if args.drop:
            drop_all()
        create_all()
    except SQLAlchemyError as exc:
        raise SystemExit(f"Failed to create tables: {exc}") from exc
    print(f"OK: {len(Base.metadata.tables)} tables ready")


if __name__ == "__main__":
    main()
