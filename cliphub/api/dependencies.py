"""
FastAPI dependency injection.

Dependencies provide the services built at start-up to route handlers.
The application context lives on app.state; each dependency just picks
the piece a route needs out of it. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Tests can install a context built around in-memory stores
- Resource lifecycle is owned by the lifespan, not by requests
"""

import logging
from typing import Annotated

from fastapi import Depends, Request

from ..config.settings import Settings, get_settings
from ..context import AppContext
from ..core.clips.engagement import EngagementMutator
from ..core.clips.lifecycle import ClipLifecycleController
from ..core.errors import ConfigurationError
from ..core.users.login import LoginService

logger = logging.getLogger(__name__)


def get_app_context(request: Request) -> AppContext:
    """
    Provide the application context created in the lifespan.

    A missing context means start-up did not run (or failed), which is a
    configuration problem rather than a request problem.
    """
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise ConfigurationError("Application context is not initialized")
    return context


AppContextDep = Annotated[AppContext, Depends(get_app_context)]


def get_clip_controller(context: AppContextDep) -> ClipLifecycleController:
    return context.clips


def get_engagement_mutator(context: AppContextDep) -> EngagementMutator:
    return context.engagement


def get_login_service(context: AppContextDep) -> LoginService:
    return context.login


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
ClipControllerDep = Annotated[ClipLifecycleController, Depends(get_clip_controller)]
EngagementDep = Annotated[EngagementMutator, Depends(get_engagement_mutator)]
LoginServiceDep = Annotated[LoginService, Depends(get_login_service)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
