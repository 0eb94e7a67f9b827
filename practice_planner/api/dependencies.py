"""
Everything a route handler receives through Depends.

FastAPI resolves each dependency once per request, so the set and practice
repositories of one request sit on the same connection and therefore the
same transaction. Tests swap any of these out via app.dependency_overrides.
"""

import logging
from contextlib import contextmanager
from typing import Annotated, Generator, Optional

from fastapi import Depends, Header, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.events.bus import EventBus, InMemoryEventBus
from ..core.practice.access import Caller
from ..core.practice.enforcer import SetBatchService
from ..infrastructure.snowflake.client import (
    MockSnowflakeConnection,
    create_snowflake_connection,
)
from ..infrastructure.snowflake.repositories import (
    PracticeRepository,
    SetRepository,
    SnowflakeConfig,
    SnowflakeConnection,
)

logger = logging.getLogger(__name__)

# auto_error=False so a missing key gets our own 403 message
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Process-wide singletons, created on first use
_mock_snowflake_connection = None
_event_bus = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """The caller's X-API-Key, if it is one of the configured keys; 403 otherwise."""
    if not api_key:
        logger.warning("Rejected request without an API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing X-API-Key header",
        )

    if api_key not in settings.api_keys_list:
        logger.warning("Rejected unknown API key", extra={"key_prefix": api_key[:4]})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unknown API key",
        )

    return api_key


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def snowflake_config_from_settings(settings: Settings) -> SnowflakeConfig:
    return SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        private_key_base64=settings.snowflake_private_key_base64,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )


@contextmanager
def open_connection(settings: Settings) -> Generator[SnowflakeConnection, None, None]:
    """
    A Snowflake connection for the block. In mock mode every caller shares
    a single in-memory database so data survives between requests.
    """
    global _mock_snowflake_connection

    if settings.snowflake_mock_mode:
        if _mock_snowflake_connection is None:
            _mock_snowflake_connection = MockSnowflakeConnection()
            logger.info("Using shared in-memory database")
        yield _mock_snowflake_connection
    else:
        config = snowflake_config_from_settings(settings)
        with create_snowflake_connection(config=config) as conn:
            yield conn


def get_connection(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[SnowflakeConnection, None, None]:
    """One connection per request, see open_connection()."""
    with open_connection(settings) as conn:
        yield conn


def get_set_repository(
    connection: Annotated[SnowflakeConnection, Depends(get_connection)],
) -> SetRepository:
    return SetRepository(connection)


def get_practice_repository(
    connection: Annotated[SnowflakeConnection, Depends(get_connection)],
) -> PracticeRepository:
    return PracticeRepository(connection)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

def get_event_bus(
    settings: Annotated[Settings, Depends(get_settings)],
) -> EventBus:
    """
    Provide the process-wide event bus.

    Publishers and subscribers must see the same instance, so unlike the
    repositories this is created once and kept.
    """
    global _event_bus

    if _event_bus is None:
        _event_bus = InMemoryEventBus(max_queue_size=settings.subscriber_queue_size)
        logger.info(
            "Created in-memory event bus",
            extra={"max_queue_size": settings.subscriber_queue_size},
        )
    return _event_bus


# ---------------------------------------------------------------------------
# Caller and Services
# ---------------------------------------------------------------------------

def get_caller(
    practices: Annotated[PracticeRepository, Depends(get_practice_repository)],
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> Caller:
    """
    Identify the caller and the clubs they belong to.

    Authentication is done upstream; we trust the X-User-Id header and
    only look up memberships.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User id required. Provide X-User-Id header.",
        )
    return Caller(user_id=x_user_id, club_ids=practices.list_user_club_ids(x_user_id))


def get_set_batch_service(
    sets: Annotated[SetRepository, Depends(get_set_repository)],
    practices: Annotated[PracticeRepository, Depends(get_practice_repository)],
    bus: Annotated[EventBus, Depends(get_event_bus)],
) -> SetBatchService:
    return SetBatchService(store=sets, directory=practices, bus=bus)


# ---------------------------------------------------------------------------
# Annotated shorthands for route signatures
# ---------------------------------------------------------------------------

AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
CallerDep = Annotated[Caller, Depends(get_caller)]
SetRepositoryDep = Annotated[SetRepository, Depends(get_set_repository)]
PracticeRepositoryDep = Annotated[PracticeRepository, Depends(get_practice_repository)]
EventBusDep = Annotated[EventBus, Depends(get_event_bus)]
SetBatchServiceDep = Annotated[SetBatchService, Depends(get_set_batch_service)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
