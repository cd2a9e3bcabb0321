"""HTTP client for the tenant / billing API.

Only the two calls the account-creation workflow needs:
  POST {base}/tenants/assign-plan       assign plan + add-ons to a tenant
  POST {base}/tenants/account-status    tenant info + verification status

Transport and HTTP errors propagate as httpx exceptions; callers decide
how to present them.  The request timeout lives here and nowhere else.
"""

import logging
from typing import Any, Optional, Protocol

import httpx

from app.config import Settings, settings as default_settings
from app.schemas.subscription import AssignPlanResponse, AssignPlanToTenant, TenantStatusResponse

logger = logging.getLogger(__name__)


class PlanAssignmentService(Protocol):
    async def assign_plan_to_tenant(self, payload: AssignPlanToTenant) -> AssignPlanResponse: ...


class TenantStatusService(Protocol):
    async def check_tenant_account_status(self, tenant_id: str) -> TenantStatusResponse: ...


class TenantApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        config: Settings = default_settings,
    ):
        self._client = client or httpx.AsyncClient(
            base_url=base_url or config.billing_api_url,
            timeout=timeout if timeout is not None else config.billing_api_timeout,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "TenantApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _post(self, path: str, json: dict[str, Any]) -> dict[str, Any]:
        response = await self._client.post(path, json=json)
        if response.is_error:
            logger.warning(
                f"Tenant API {path} returned HTTP {response.status_code}",
                extra={"path": path, "status_code": response.status_code},
            )
        response.raise_for_status()
        return response.json()

    async def assign_plan_to_tenant(self, payload: AssignPlanToTenant) -> AssignPlanResponse:
        body = await self._post("/tenants/assign-plan", payload.model_dump(mode="json"))
        return AssignPlanResponse.model_validate(body)

    async def check_tenant_account_status(self, tenant_id: str) -> TenantStatusResponse:
        body = await self._post("/tenants/account-status", {"tenant_id": tenant_id})
        return TenantStatusResponse.model_validate(body)
