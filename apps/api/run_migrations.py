#!/usr/bin/env python3
"""Database bootstrap: run Alembic migrations (production-safe).

- Wait for the database to accept connections.
- Always run `alembic upgrade head` on startup.
- Refuse to migrate when the revision graph has more than one head or root.
- If migrations fail, fail fast (don't start with an unknown schema).
"""

import logging
import os
import sys
import time
from typing import List

from dotenv import load_dotenv
from sqlalchemy import text

load_dotenv()

logger = logging.getLogger("run_migrations")


def check_db_ready() -> bool:
    """Check if database is ready"""
    from core.database import engine

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False


def _get_alembic_config():
    """Load Alembic config for programmatic migrations."""
    from alembic.config import Config

    here = os.path.dirname(os.path.abspath(__file__))
    cfg = Config(os.path.join(here, "alembic.ini"))
    cfg.set_main_option("script_location", os.path.join(here, "alembic"))
    return cfg


def check_migration_graph(cfg=None) -> List[str]:
    """
    Problems with the revision graph; empty when it is one linear chain.

    A second root or head means a migration was added with the wrong
    down_revision, and `upgrade head` would be ambiguous.
    """
    from alembic.script import ScriptDirectory

    script = ScriptDirectory.from_config(cfg or _get_alembic_config())
    heads = sorted(script.get_heads())
    roots = sorted(r.revision for r in script.walk_revisions() if r.down_revision is None)

    problems = []
    if len(heads) != 1:
        problems.append(f"expected one head, found {len(heads)}: {heads}")
    if len(roots) != 1:
        problems.append(f"expected one root, found {len(roots)}: {roots}")
    return problems


def alembic_upgrade_head() -> None:
    """Apply all pending migrations."""
    from alembic import command

    command.upgrade(_get_alembic_config(), "head")


def main(max_retries: int = 30) -> int:
    from core.logging import setup_logging

    setup_logging()
    logger.info("Waiting for database to be ready...")

    for attempt in range(1, max_retries + 1):
        if check_db_ready():
            logger.info("Database is ready")
            break
        logger.info(f"Database is unavailable - sleeping (attempt {attempt}/{max_retries})")
        time.sleep(1)
    else:
        logger.error("Database is not ready after maximum retries")
        return 1

    problems = check_migration_graph()
    if problems:
        for problem in problems:
            logger.error(f"Migration graph check failed: {problem}")
        return 1

    try:
        alembic_upgrade_head()
    except Exception as e:
        logger.error(f"Alembic upgrade failed: {e}", exc_info=True)
        return 1

    logger.info("Migrations completed successfully")
    return 0


if __name__ == '__main__':
    sys.exit(main())
