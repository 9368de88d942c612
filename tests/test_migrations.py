"""Tests for the SQL migration runner and startup sequencing."""

import logging
from pathlib import Path

import pytest
from sqlalchemy import func, inspect, select
from sqlalchemy.ext.asyncio import AsyncEngine

from kitchen.core.config import Settings
from kitchen.core.exceptions import MigrationFailure
from kitchen.db.migrate import SchemaMigrator, main
from kitchen.db.session import build_engine
from kitchen.main import create_app, seed_first_admin
from kitchen.models.user import User


@pytest.fixture
async def engine(settings: Settings):
    engine = build_engine(settings)
    yield engine
    await engine.dispose()


@pytest.fixture
def scripts(tmp_path: Path):
    def _write(name: str, sql: str) -> Path:
        path = tmp_path / name
        path.write_text(sql, encoding="utf-8")
        return path

    return _write


async def _table_names(engine: AsyncEngine) -> set[str]:
    async with engine.connect() as conn:
        return set(await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names()))


@pytest.mark.asyncio
async def test_scripts_apply_in_filename_order(engine, scripts, tmp_path):
    scripts("010_c.sql", "CREATE TABLE IF NOT EXISTS c (id INTEGER);")
    scripts("001_a.sql", "CREATE TABLE IF NOT EXISTS a (id INTEGER);")
    scripts("002_b.sql", "CREATE TABLE IF NOT EXISTS b (a_id INTEGER REFERENCES a (id));")

    applied = await SchemaMigrator(engine, tmp_path).run_all()

    assert applied == ["001_a.sql", "002_b.sql", "010_c.sql"]
    assert {"a", "b", "c", "schema_migrations"} <= await _table_names(engine)


def test_discover_is_sorted_restartable_and_ignores_other_files(settings, scripts, tmp_path):
    scripts("b.sql", "SELECT 1;")
    scripts("a.sql", "SELECT 1;")
    scripts("README.md", "not a migration")
    (tmp_path / "z.sql").mkdir()

    migrator = SchemaMigrator(build_engine(settings), tmp_path)
    first = [s.name for s in migrator.discover()]
    second = [s.name for s in migrator.discover()]

    assert first == second == ["a.sql", "b.sql"]


@pytest.mark.asyncio
async def test_second_run_skips_applied_scripts(engine, scripts, tmp_path):
    # Not existence-guarded: executing it twice would fail.
    scripts("001_widgets.sql", "CREATE TABLE widgets (id INTEGER PRIMARY KEY);")
    migrator = SchemaMigrator(engine, tmp_path)

    assert await migrator.run_all() == ["001_widgets.sql"]
    tables_after_first = await _table_names(engine)
    ledger_after_first = await migrator.applied_scripts()

    assert await migrator.run_all() == []
    assert await _table_names(engine) == tables_after_first
    assert await migrator.applied_scripts() == ledger_after_first == ["001_widgets.sql"]


@pytest.mark.asyncio
async def test_failed_script_halts_and_is_not_recorded(engine, scripts, tmp_path, caplog):
    scripts("001_ok.sql", "CREATE TABLE IF NOT EXISTS ok (id INTEGER);")
    broken = scripts(
        "002_broken.sql",
        "CREATE TABLE IF NOT EXISTS half (id INTEGER);\nINSERT INTO no_such_table VALUES (1);",
    )
    scripts("003_later.sql", "CREATE TABLE IF NOT EXISTS later (id INTEGER);")
    migrator = SchemaMigrator(engine, tmp_path)

    with caplog.at_level(logging.ERROR, logger="kitchen.db.migrate"):
        with pytest.raises(MigrationFailure) as excinfo:
            await migrator.run_all()

    assert excinfo.value.script == "002_broken.sql"
    assert "no_such_table" in excinfo.value.reason
    assert "002_broken.sql" in caplog.text
    assert await migrator.applied_scripts() == ["001_ok.sql"]
    assert "later" not in await _table_names(engine)

    # Fixed script is retried verbatim on the next run.
    broken.write_text("CREATE TABLE IF NOT EXISTS half (id INTEGER);", encoding="utf-8")
    assert await migrator.run_all() == ["002_broken.sql", "003_later.sql"]
    assert await migrator.applied_scripts() == ["001_ok.sql", "002_broken.sql", "003_later.sql"]


@pytest.mark.asyncio
async def test_missing_directory_fails_instead_of_applying_nothing(engine, tmp_path):
    missing = tmp_path / "does-not-exist"

    with pytest.raises(MigrationFailure) as excinfo:
        await SchemaMigrator(engine, missing).run_all()

    assert excinfo.value.script == str(missing)
    assert "not found" in excinfo.value.reason


class _StaleLedgerMigrator(SchemaMigrator):
    """Sees every script as pending, like an instance that lost a deploy race."""

    async def is_applied(self, conn, script):
        return False


@pytest.mark.asyncio
async def test_ledger_row_written_by_another_instance_is_tolerated(
    engine, scripts, tmp_path, caplog
):
    scripts("001_guarded.sql", "CREATE TABLE IF NOT EXISTS guarded (id INTEGER);")
    assert await SchemaMigrator(engine, tmp_path).run_all() == ["001_guarded.sql"]

    late = _StaleLedgerMigrator(engine, tmp_path)
    with caplog.at_level(logging.WARNING, logger="kitchen.db.migrate"):
        await late.run_all()

    assert "already recorded by another instance" in caplog.text
    assert await late.applied_scripts() == ["001_guarded.sql"]


def test_statements_are_split_and_comments_dropped(settings, scripts, tmp_path):
    scripts(
        "001_multi.sql",
        "-- header comment\n"
        "CREATE TABLE IF NOT EXISTS notes (body TEXT);\n"
        "INSERT INTO notes (body) VALUES ('a; b');\n"
        "-- trailing comment\n",
    )
    (script,) = SchemaMigrator(build_engine(settings), tmp_path).discover()
    statements = script.statements()

    assert len(statements) == 2
    assert statements[1].startswith("INSERT INTO notes")
    assert "'a; b'" in statements[1]


@pytest.mark.asyncio
async def test_empty_script_is_still_recorded(engine, scripts, tmp_path):
    scripts("001_noop.sql", "-- intentionally empty\n")
    migrator = SchemaMigrator(engine, tmp_path)
    assert await migrator.run_all() == ["001_noop.sql"]
    assert await migrator.applied_scripts() == ["001_noop.sql"]


@pytest.mark.asyncio
async def test_bundled_migrations_are_idempotent(engine, settings: Settings):
    migrator = SchemaMigrator(engine, settings.MIGRATIONS_DIR)

    first = await migrator.run_all()
    assert first == [
        "0001_create_users.sql",
        "0002_create_inventory_items.sql",
        "0003_create_stock_movements.sql",
    ]
    assert await migrator.run_all() == []
    assert {"users", "inventory_items", "stock_movements"} <= await _table_names(engine)


# ── Startup sequencing ──────────────────────────────────────────────
@pytest.mark.asyncio
async def test_startup_migrates_then_seeds_admin(settings: Settings):
    app = create_app(settings.model_copy(update={"RUN_MIGRATIONS_ON_STARTUP": True}))

    async with app.router.lifespan_context(app):
        async with app.state.session_factory() as session:
            admins = await session.scalar(
                select(func.count()).select_from(User).where(User.email == "admin@example.com")
            )
            admin = (
                await session.execute(select(User).where(User.email == "admin@example.com"))
            ).scalar_one()
        assert admins == 1
        assert admin.role == "admin"
        assert admin.name == "Admin"
        assert admin.password_hash != "admin123"

        # Seeding again is a no-op.
        await seed_first_admin(app.state.session_factory, app.state.settings)
        async with app.state.session_factory() as session:
            assert await session.scalar(select(func.count()).select_from(User)) == 1


@pytest.mark.asyncio
async def test_startup_aborts_on_migration_failure(settings: Settings, scripts, tmp_path):
    scripts("001_bad.sql", "THIS IS NOT SQL;")
    app = create_app(
        settings.model_copy(
            update={"RUN_MIGRATIONS_ON_STARTUP": True, "MIGRATIONS_DIR": tmp_path}
        )
    )

    with pytest.raises(MigrationFailure):
        async with app.router.lifespan_context(app):
            pass  # pragma: no cover

    await app.state.engine.dispose()


def test_cli_reports_failure_with_exit_code(scripts, tmp_path):
    scripts("001_bad.sql", "THIS IS NOT SQL;")
    assert main(["--dir", str(tmp_path)]) == 1


def test_cli_applies_scripts(scripts, tmp_path):
    scripts("001_ok.sql", "CREATE TABLE IF NOT EXISTS ok (id INTEGER);")
    assert main(["--dir", str(tmp_path)]) == 0


def test_cli_fails_on_missing_directory(tmp_path):
    assert main(["--dir", str(tmp_path / "nowhere")]) == 1
