"""Apply ``schema.sql`` to the notification database."""

from __future__ import annotations

import logging
import pathlib
import re
import sys
from typing import Iterator

from dotenv import load_dotenv
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.db.session import create_engine_from_env

logger = logging.getLogger(__name__)

SCHEMA_PATH = pathlib.Path(__file__).with_name("schema.sql")
LINE_COMMENT_RE = re.compile(r"--.*$")


def split_statements(sql: str) -> Iterator[str]:
    """Yield ``;``-terminated statements with ``--`` comments removed."""
    statement: list[str] = []
    for raw in sql.splitlines():
        line = LINE_COMMENT_RE.sub("", raw).rstrip()
        if not line.strip():
            continue
        statement.append(line)
        if line.endswith(";"):
            yield "\n".join(statement)
            statement = []
    if statement:
        yield "\n".join(statement)


def run_migrations(engine: Engine, path: pathlib.Path = SCHEMA_PATH) -> int:
    """Run every statement of ``path`` in one transaction; returns how many ran."""
    statements = list(split_statements(path.read_text()))
    with engine.begin() as conn:
        for statement in statements:
            conn.execute(text(statement))
    logger.info("Applied %d schema statements from %s", len(statements), path.name)
    return len(statements)


def main() -> None:
    load_dotenv()
    logging.basicConfig(level=logging.INFO)
    try:
        run_migrations(create_engine_from_env())
    except SQLAlchemyError as exc:
        logger.error("Migration failed: %s", exc)
        sys.exit(2)


if __name__ == "__main__":
    main()
