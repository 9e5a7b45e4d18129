import logging

import pytest_asyncio

from bikeshop.db import crud
from bikeshop.db.engine import Database
from bikeshop.models.enums import Role
from bikeshop.services.auth import verify_password
from bikeshop.services.background import BackgroundCounters
from bikeshop.services.bootstrap import (
    DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD, SAMPLE_BRANDS, SAMPLE_SERVICES,
    ensure_default_admin, seed_sample_data,
)


@pytest_asyncio.fixture
async def database():
    database = Database(":memory:")
    await database.create_all()
    yield database
    await database.dispose()


async def test_default_admin_only_on_empty_table(database, caplog):
    async with database.session_factory() as db:
        with caplog.at_level(logging.WARNING):
            admin = await ensure_default_admin(db)
        assert admin.role is Role.ADMIN
        assert verify_password(DEFAULT_ADMIN_PASSWORD, admin.password_hash)
        assert DEFAULT_ADMIN_EMAIL in caplog.text

        assert await ensure_default_admin(db) is None
        assert await crud.count_users(db) == 1


async def test_no_admin_when_users_exist(database):
    async with database.session_factory() as db:
        await crud.create_user(db, "someone@test.com", "hash")
        assert await ensure_default_admin(db) is None
        assert await crud.count_users(db, Role.ADMIN) == 0


async def test_seed_is_idempotent(database):
    async with database.session_factory() as db:
        await seed_sample_data(db)
        await seed_sample_data(db)
        assert len(await crud.list_brands(db)) == len(SAMPLE_BRANDS)
        services = await crud.list_services(db)
        assert len(services) == len(SAMPLE_SERVICES)
        assert {s.estimated_hours for s in services} >= {1.5, 0.75}


# ── Background counters ───────────────────────────────────

async def test_counters_update_after_drain(database):
    async with database.session_factory() as db:
        ad = await crud.create_ad(db, title="Ad", media_url="https://x/ad.png")

    counters = BackgroundCounters(database.session_factory)
    counters.ad_impression(ad.id)
    counters.ad_impression(ad.id)
    counters.ad_click(ad.id)
    await counters.drain()
    assert counters.pending == 0

    async with database.session_factory() as db:
        ad = await crud.get_ad(db, ad.id)
    assert (ad.impressions, ad.clicks) == (2, 1)


async def test_counter_failure_is_logged_not_raised(database, caplog):
    async def boom(db):
        raise RuntimeError("disk full")

    counters = BackgroundCounters(database.session_factory)
    with caplog.at_level(logging.WARNING, logger="bikeshop.services.background"):
        counters.fire(boom, "boom")
        await counters.drain()
    assert "Background task boom failed" in caplog.text
    assert counters.pending == 0


async def test_concurrent_sessions_do_not_lose_writes(database):
    async with database.session_factory() as db:
        ad = await crud.create_ad(db, title="Ad", media_url="https://x/ad.png")

    counters = BackgroundCounters(database.session_factory)
    for _ in range(5):
        counters.ad_impression(ad.id)
        counters.ad_click(ad.id)
    await counters.drain()

    async with database.session_factory() as db:
        ad = await crud.get_ad(db, ad.id)
    assert (ad.impressions, ad.clicks) == (5, 5)


async def test_memory_databases_are_private(database):
    other = Database(":memory:")
    await other.create_all()
    try:
        async with database.session_factory() as db:
            await crud.create_user(db, "only-here@test.com", "hash")
        async with other.session_factory() as db:
            assert await crud.count_users(db) == 0
    finally:
        await other.dispose()
