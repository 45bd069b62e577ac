"""
Application context: every initialized store handle and service.

Built exactly once at process start (FastAPI lifespan, or the entry point
of a script) and passed to whoever needs it. Nothing here is a lazily
initialized global; tests build their own context around in-memory stores.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from .config.settings import Settings
from .core.clips.engagement import EngagementMutator
from .core.clips.interfaces import ClipRepository, ObjectStore
from .core.clips.lifecycle import ClipLifecycleController
from .core.clips.reconcile import ClipReconciler
from .core.errors import ConfigurationError
from .core.users.login import LoginService, UserRepository
from .infrastructure.snowflake.client import SnowflakeConfig, SnowflakeConnectionPool
from .infrastructure.snowflake.repositories.clips import (
    MockClipRepository,
    SnowflakeClipRepository,
)
from .infrastructure.snowflake.repositories.users import (
    MockUserRepository,
    SnowflakeUserRepository,
)
from .infrastructure.storage.client import StorageConfig, create_storage_client
from .infrastructure.storage.grants import AccessGrantIssuer

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Initialized stores plus the services wired on top of them."""
    settings: Settings
    clip_repository: ClipRepository
    user_repository: UserRepository
    object_store: ObjectStore
    grant_issuer: AccessGrantIssuer
    clips: ClipLifecycleController
    engagement: EngagementMutator
    login: LoginService
    reconciler: ClipReconciler
    snowflake_pool: Optional[SnowflakeConnectionPool] = None

    def close(self) -> None:
        """Release pooled connections. Called once at shutdown."""
        if self.snowflake_pool is not None:
            self.snowflake_pool.close()


def wire_context(
    settings: Settings,
    clip_repository: ClipRepository,
    user_repository: UserRepository,
    object_store: ObjectStore,
    snowflake_pool: Optional[SnowflakeConnectionPool] = None,
) -> AppContext:
    """Build the services on top of already-initialized stores."""
    grant_issuer = AccessGrantIssuer(
        object_store,
        clock_skew_seconds=settings.grant_clock_skew_seconds,
    )

    return AppContext(
        settings=settings,
        clip_repository=clip_repository,
        user_repository=user_repository,
        object_store=object_store,
        grant_issuer=grant_issuer,
        clips=ClipLifecycleController(
            clip_repository,
            object_store,
            grant_issuer,
            upload_ttl_minutes=settings.upload_grant_ttl_minutes,
            read_ttl_minutes=settings.read_grant_ttl_minutes,
            max_attempts=settings.max_replace_attempts,
        ),
        engagement=EngagementMutator(
            clip_repository,
            max_attempts=settings.max_replace_attempts,
        ),
        login=LoginService(
            user_repository,
            max_attempts=settings.max_replace_attempts,
        ),
        reconciler=ClipReconciler(
            clip_repository,
            object_store,
            pending_deadline=timedelta(hours=settings.pending_upload_deadline_hours),
            orphan_grace=timedelta(hours=settings.orphan_grace_hours),
        ),
        snowflake_pool=snowflake_pool,
    )


def build_app_context(settings: Settings) -> AppContext:
    """
    Initialize every store from settings and wire the services.

    Raises ConfigurationError up front when required settings are
    missing, rather than failing on the first request that needs them.
    """
    missing = settings.validate_required_fields()
    if missing:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing}
        )
        raise ConfigurationError(
            f"Missing required configuration: {', '.join(missing)}"
        )

    pool = None
    if settings.snowflake_mock_mode:
        clip_repository = MockClipRepository()
        user_repository = MockUserRepository()
    else:
        pool = SnowflakeConnectionPool(
            SnowflakeConfig(
                account=settings.snowflake_account,
                user=settings.snowflake_user,
                password=settings.snowflake_password or None,
                private_key_path=settings.snowflake_private_key_path,
                private_key_base64=settings.snowflake_private_key_base64,
                database=settings.snowflake_database,
                schema=settings.snowflake_schema,
                warehouse=settings.snowflake_warehouse,
                role=settings.snowflake_role,
            ),
            pool_size=settings.snowflake_pool_size,
        )
        clip_repository = SnowflakeClipRepository(pool)
        user_repository = SnowflakeUserRepository(pool)

    clip_repository.ensure_schema()
    user_repository.ensure_schema()

    object_store = create_storage_client(
        config=StorageConfig(
            access_key_id=settings.r2_access_key_id,
            secret_access_key=settings.r2_secret_access_key,
            bucket_name=settings.r2_bucket_name,
            endpoint_url=settings.r2_endpoint,
            region=settings.r2_region,
        ),
        mock_mode=settings.r2_mock_mode,
    )

    logger.info(
        "Application context initialized",
        extra={
            "mock_mode": {
                "snowflake": settings.snowflake_mock_mode,
                "r2": settings.r2_mock_mode,
            },
            "bucket": settings.r2_bucket_name,
        }
    )

    return wire_context(
        settings,
        clip_repository,
        user_repository,
        object_store,
        snowflake_pool=pool,
    )
