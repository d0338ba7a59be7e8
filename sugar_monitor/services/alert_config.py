"""Alert configuration service.

One configuration per user, saved with upsert semantics. Concurrent
first saves are resolved by the unique constraint on ``user_id``.
"""

import uuid
from typing import Any

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sugar_monitor.logging_config import get_logger
from sugar_monitor.models.alert_config import AlertConfig
from sugar_monitor.models.user import User
from sugar_monitor.schemas.alert_config import AlertConfigInput, EmailDestination
from sugar_monitor.services.audit_service import log_activity

logger = get_logger(__name__)


def _destination_key(destination: dict[str, Any]) -> tuple[str, str]:
    kind = destination.get("kind", "")
    value = (
        destination.get("address")
        or destination.get("number")
        or destination.get("device_token")
        or ""
    )
    if kind == "email":
        value = value.lower()
    return kind, value


def normalize_destinations(
    owner_email: str | None,
    destinations: list[BaseModel],
) -> list[dict[str, Any]]:
    """Serialize destinations, always including the owner's email first.

    Duplicates (same kind and value, emails compared case-insensitively)
    are dropped, keeping the first occurrence.
    """
    candidates: list[BaseModel] = []
    if owner_email:
        candidates.append(EmailDestination(address=owner_email))
    candidates.extend(destinations)

    seen: set[tuple[str, str]] = set()
    result: list[dict[str, Any]] = []
    for destination in candidates:
        data = destination.model_dump(mode="json")
        key = _destination_key(data)
        if key in seen:
            continue
        seen.add(key)
        result.append(data)
    return result


async def get_alert_config(
    user_id: uuid.UUID,
    db: AsyncSession,
    enabled_only: bool = False,
) -> AlertConfig | None:
    """Return the user's alert configuration, if any."""
    query = select(AlertConfig).where(AlertConfig.user_id == user_id)
    if enabled_only:
        query = query.where(AlertConfig.enabled.is_(True))
    result = await db.execute(query)
    return result.scalar_one_or_none()


def _apply(config: AlertConfig, body: AlertConfigInput, destinations: list[dict]) -> None:
    config.high_threshold = body.high_threshold
    config.low_threshold = body.low_threshold
    config.notification_destinations = destinations


async def save_alert_config(
    user: User,
    body: AlertConfigInput,
    db: AsyncSession,
) -> tuple[AlertConfig, bool]:
    """Create or replace the user's alert configuration.

    Returns:
        (config, created) where created is True for a first save.

    Raises:
        ValueError: If high_threshold is not greater than low_threshold.
    """
    if body.high_threshold <= body.low_threshold:
        msg = (
            f"high_threshold ({body.high_threshold}) must be greater than "
            f"low_threshold ({body.low_threshold})"
        )
        raise ValueError(msg)

    destinations = normalize_destinations(user.email, body.all_destinations())

    config = await get_alert_config(user.id, db)
    created = config is None

    if config is None:
        config = AlertConfig(user_id=user.id, enabled=True)
        _apply(config, body, destinations)
        db.add(config)
        try:
            await db.commit()
        except IntegrityError:
            # Concurrent request created the row first - update it instead
            await db.rollback()
            config = await get_alert_config(user.id, db)
            if config is None:
                raise
            created = False
            _apply(config, body, destinations)
            await db.commit()
    else:
        _apply(config, body, destinations)
        await db.commit()

    await db.refresh(config)

    logger.info(
        "Saved alert configuration",
        user_id=str(user.id),
        created=created,
        destinations=len(destinations),
    )
    audited = await log_activity(
        db,
        user.id,
        "CREATE" if created else "UPDATE",
        "alert_config",
        config.id,
    )
    if not audited:
        await db.refresh(config)

    return config, created


async def toggle_alert_config(user_id: uuid.UUID, db: AsyncSession) -> AlertConfig | None:
    """Flip the enabled flag. Returns None when the user has no configuration."""
    config = await get_alert_config(user_id, db)
    if config is None:
        return None

    config.enabled = not config.enabled
    await db.commit()
    await db.refresh(config)

    logger.info(
        "Toggled alert configuration",
        user_id=str(user_id),
        enabled=config.enabled,
    )
    audited = await log_activity(
        db,
        user_id,
        "TOGGLE",
        "alert_config",
        config.id,
        detail={"enabled": config.enabled},
    )
    if not audited:
        await db.refresh(config)
    return config
