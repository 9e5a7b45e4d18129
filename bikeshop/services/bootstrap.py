"""First-run setup: default administrator and optional demo catalog."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from bikeshop.db import crud
from bikeshop.models import User
from bikeshop.models.enums import Role
from bikeshop.services.auth import hash_password

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_EMAIL = "admin@bikeshop.local"
DEFAULT_ADMIN_PASSWORD = "admin123"
DEFAULT_ADMIN_NAME = "Administrator"

SAMPLE_BRANDS = ["Trek", "Specialized", "Giant", "Cannondale", "Scott"]

# (name, description, base_price, estimated_hours)
SAMPLE_SERVICES = [
    ("General inspection", "Full check of every component", 2500, 1.5),
    ("Inner tube replacement", "Tube swap on either wheel", 800, 0.5),
    ("Brake adjustment", "Adjust and tune the braking system", 1200, 0.75),
    ("Chain replacement", "Replace a worn chain", 1500, 0.5),
    ("Full service", "Complete preventive maintenance", 5000, 3),
    ("Wheel truing", "True the wheel and tension the spokes", 1800, 1),
    ("Tyre replacement", "Fit new tyres", 1000, 0.5),
    ("Gear tuning", "Adjust the drivetrain and shifters", 1500, 1),
]


async def ensure_default_admin(db: AsyncSession) -> User | None:
    """Create the default admin when the users table is empty.

    Returns the new user, or None if any user already exists.
    """
    if await crud.count_users(db) > 0:
        return None

    admin = await crud.create_user(
        db,
        DEFAULT_ADMIN_EMAIL,
        hash_password(DEFAULT_ADMIN_PASSWORD),
        name=DEFAULT_ADMIN_NAME,
        role=Role.ADMIN,
    )
    logger.warning(
        "Default admin created: %s / %s. Change this password in production!",
        DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD,
    )
    return admin


async def seed_sample_data(db: AsyncSession) -> None:
    """Insert demo brands and services that are not present yet."""
    for name in SAMPLE_BRANDS:
        if await crud.find_brand_by_name(db, name) is None:
            await crud.create_brand(db, name)

    existing = {s.name for s in await crud.list_services(db)}
    for name, description, price, hours in SAMPLE_SERVICES:
        if name not in existing:
            await crud.create_service(
                db, name, description=description, base_price=price, estimated_hours=hours,
            )
    logger.info("Sample data created")
