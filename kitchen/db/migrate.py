"""
Sequential SQL migration runner.

Every ``*.sql`` file in the migrations directory is applied once, in
filename order, and recorded in the ``schema_migrations`` ledger.  A script
and its ledger row are written in the same transaction, so a failed script
leaves no ledger row and is retried verbatim on the next start.

Application is at-least-once: a crash between a script's DDL and its ledger
commit (or two instances deploying at the same time) can run a script
again, and drivers such as SQLite commit DDL eagerly.  Scripts must
therefore use existence-guarded DDL (``CREATE TABLE IF NOT EXISTS`` ...).

Run standalone with ``kitchen-migrate`` or ``python -m kitchen.db.migrate``.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import sqlparse
from sqlalchemy import Column, DateTime, MetaData, String, Table, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from kitchen.core.config import get_settings
from kitchen.core.exceptions import MigrationFailure
from kitchen.db.session import build_engine

logger = logging.getLogger(__name__)

_ledger_metadata = MetaData()

migration_ledger = Table(
    "schema_migrations",
    _ledger_metadata,
    Column("filename", String(255), primary_key=True),
    Column("applied_at", DateTime(timezone=True), nullable=False),
)


def _record(dialect_name: str, filename: str):
    """Ledger insert that leaves an existing row alone where the dialect allows it."""
    values = {"filename": filename, "applied_at": datetime.now(timezone.utc)}
    if dialect_name == "postgresql":
        stmt = postgresql.insert(migration_ledger).values(**values)
    elif dialect_name == "sqlite":
        stmt = sqlite.insert(migration_ledger).values(**values)
    else:
        return insert(migration_ledger).values(**values)
    return stmt.on_conflict_do_nothing(index_elements=["filename"])


@dataclass(frozen=True)
class MigrationScript:
    name: str
    path: Path

    def statements(self) -> list[str]:
        """Split the script into executable statements, dropping comment-only chunks."""
        sql = self.path.read_text(encoding="utf-8")
        statements = []
        for raw in sqlparse.split(sql):
            if sqlparse.format(raw, strip_comments=True).strip():
                statements.append(raw.strip())
        return statements


class SchemaMigrator:
    def __init__(self, engine: AsyncEngine, directory: Path) -> None:
        self._engine = engine
        self.directory = Path(directory)

    async def bootstrap(self) -> None:
        """Create the ledger table if it does not exist yet."""
        async with self._engine.begin() as conn:
            await conn.run_sync(_ledger_metadata.create_all)

    def discover(self) -> Iterator[MigrationScript]:
        """Yield the directory's scripts in lexicographic filename order.

        Each call starts a fresh listing, so the sequence can be restarted.
        """
        paths = sorted(
            (p for p in self.directory.glob("*.sql") if p.is_file()),
            key=lambda p: p.name,
        )
        for path in paths:
            yield MigrationScript(name=path.name, path=path)

    async def is_applied(self, conn: AsyncConnection, script: MigrationScript) -> bool:
        result = await conn.execute(
            select(migration_ledger.c.filename).where(
                migration_ledger.c.filename == script.name
            )
        )
        return result.first() is not None

    async def apply(self, script: MigrationScript) -> bool:
        """Apply one script unless the ledger already has it.

        Returns ``True`` if the script ran, ``False`` if it was skipped.
        Raises ``MigrationFailure`` on any read or execution error.
        """
        try:
            async with self._engine.begin() as conn:
                if await self.is_applied(conn, script):
                    logger.info("↷ Skipping %s (already applied)", script.name)
                    return False

                logger.info("↦ Applying %s", script.name)
                for statement in script.statements():
                    await conn.exec_driver_sql(statement)
                result = await conn.execute(_record(conn.dialect.name, script.name))
                if result.rowcount == 0:
                    logger.warning(
                        "%s already recorded by another instance", script.name
                    )
        except (SQLAlchemyError, OSError, UnicodeDecodeError) as exc:
            logger.exception("Migration %s failed", script.name)
            raise MigrationFailure(script.name, str(exc)) from exc
        return True

    async def run_all(self) -> list[str]:
        """Bootstrap, then apply every discovered script, stopping at the first failure."""
        if not self.directory.is_dir():
            raise MigrationFailure(str(self.directory), "migrations directory not found")

        logger.info("Starting database migrations from %s", self.directory)
        await self.bootstrap()

        applied = []
        for script in self.discover():
            if await self.apply(script):
                applied.append(script.name)

        logger.info("Migrations complete (%d applied)", len(applied))
        return applied

    async def applied_scripts(self) -> list[str]:
        """Filenames recorded in the ledger, sorted."""
        async with self._engine.connect() as conn:
            result = await conn.execute(
                select(migration_ledger.c.filename).order_by(migration_ledger.c.filename)
            )
            return list(result.scalars())


# ── Command-line entry point ───────────────────────────────────────
async def _run(directory: Path | None) -> None:
    settings = get_settings()
    engine = build_engine(settings)
    try:
        await SchemaMigrator(engine, directory or settings.MIGRATIONS_DIR).run_all()
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Apply pending SQL migrations.")
    parser.add_argument(
        "--dir",
        type=Path,
        default=None,
        help="Directory of .sql scripts (defaults to MIGRATIONS_DIR)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    try:
        asyncio.run(_run(args.dir))
    except MigrationFailure as exc:
        logger.error("❌ %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
