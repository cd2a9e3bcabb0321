"""FastAPI dependencies for the onboarding endpoints.

Every onboarding request names its session in the X-Onboarding-Session
header; the session id namespaces all of that session's flags.
"""

import re
from typing import AsyncGenerator

from fastapi import Depends, Header

from app.config import settings
from app.middleware.exceptions import SessionContextError
from app.services.tenant_api import TenantApiClient
from app.services.workflow import StepTracker
from app.utils.flag_store import FlagStore, build_flag_store

SESSION_HEADER = "X-Onboarding-Session"

_SESSION_RE = re.compile(r"^[A-Za-z0-9_-]{8,128}$")


def get_session_id(
    x_onboarding_session: str | None = Header(default=None, alias=SESSION_HEADER),
) -> str:
    """Return the session id or raise if missing/malformed."""
    if not x_onboarding_session:
        raise SessionContextError()
    if not _SESSION_RE.match(x_onboarding_session):
        raise SessionContextError(f"Invalid {SESSION_HEADER} header")
    return x_onboarding_session


def get_flag_store(session_id: str = Depends(get_session_id)) -> FlagStore:
    return build_flag_store(session_id, settings)


def get_step_tracker(store: FlagStore = Depends(get_flag_store)) -> StepTracker:
    return StepTracker(store)


async def get_tenant_api() -> AsyncGenerator[TenantApiClient, None]:
    client = TenantApiClient(config=settings)
    try:
        yield client
    finally:
        await client.aclose()
