import argparse
from typing import Optional

from sqlalchemy import Engine, inspect

from .models import Base
from .session import engine as default_engine

from app.utils.logging import get_logger

logger = get_logger()


def create_tables(engine: Engine = default_engine) -> None:
    Base.metadata.create_all(engine)
    logger.info("Created all tables.")


def drop_tables(engine: Engine = default_engine) -> None:
    Base.metadata.drop_all(engine)
    logger.info("Dropped all tables.")


def reset_db(engine: Engine = default_engine) -> None:
    """Drop and recreate the schema. Every row is lost."""
    logger.info("Resetting database...")
    drop_tables(engine)
    create_tables(engine)
    logger.info("Database reset complete.")


def missing_tables(engine: Engine = default_engine) -> list:
    existing = set(inspect(engine).get_table_names())
    return sorted(set(Base.metadata.tables) - existing)


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(description="Manage the certification database schema")
    parser.add_argument(
        "command",
        nargs="?",
        default="create",
        choices=["create", "drop", "reset", "check"],
    )
    args = parser.parse_args(argv)

    if args.command == "create":
        create_tables()
    elif args.command == "drop":
        drop_tables()
    elif args.command == "reset":
        reset_db()
    else:
        missing = missing_tables()
        if missing:
            logger.warning(f"Missing tables: {', '.join(missing)}")
        else:
            logger.info("Schema is up to date.")


if __name__ == "__main__":
    main()
