"""Create (or recreate) the schema directly from the ORM metadata.

Intended for local SQLite databases; deployed databases go through
``murmur-migrate``.
"""
from __future__ import annotations

import argparse
import logging

from murmur_stage.core.logging_setup import configure_logging
from murmur_stage.core.settings import settings
from murmur_stage.db.session import create_tables, drop_tables

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Create the Murmur tables")
    parser.add_argument(
        "--drop",
        action="store_true",
        help="Drop every table before creating the schema.",
    )
    args = parser.parse_args(argv)

    configure_logging()
    if args.drop:
        logger.warning("Dropping all tables on %s", settings.effective_database_url)
        drop_tables()
    create_tables()
    logger.info("Schema ready on %s", settings.effective_database_url)


if __name__ == "__main__":
    main()
