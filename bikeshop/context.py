"""Per-application dependency container stored on app.state."""

from __future__ import annotations

from dataclasses import dataclass

from bikeshop.config import Settings
from bikeshop.db.engine import Database
from bikeshop.services.auth import TokenService
from bikeshop.services.background import BackgroundCounters
from bikeshop.services.rendering import TemplateRenderer


@dataclass
class AppContext:
    settings: Settings
    db: Database
    tokens: TokenService
    renderer: TemplateRenderer
    counters: BackgroundCounters


def build_context(settings: Settings) -> AppContext:
    db = Database(settings.database.path, echo=False)
    return AppContext(
        settings=settings,
        db=db,
        tokens=TokenService(
            secret=settings.jwt.secret,
            issuer=settings.business.name,
            expiration_hours=settings.jwt.expiration_hours,
        ),
        renderer=TemplateRenderer(settings),
        counters=BackgroundCounters(db.session_factory),
    )
