from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from compliance_workflow.config import settings
from compliance_workflow.schemas.compliance_steps import (
    ComplianceStepResponse,
    ComplianceStepsResponse,
    DraftSavedResponse,
)
from compliance_workflow.workflow.content import ContentSnapshot
from compliance_workflow.workflow.errors import (
    CapabilityError,
    InvalidTransition,
    NotFound,
    PersistenceFailure,
    WorkflowError,
    WorkflowValidationError,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class ComplianceApiConfigError(RuntimeError):
    pass


class ComplianceApiClient:
    """Async client for the vendor compliance endpoints.

    Failures come back as the engine's own error kinds so callers such as the
    draft autosave controller can react to them without knowing about HTTP.
    ``save_draft`` matches the autosave ``persist`` signature.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        bearer_token: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        resolved_base = (base_url or settings.COMPLIANCE_API_BASE_URL or "").strip()
        if not resolved_base:
            raise ComplianceApiConfigError("COMPLIANCE_API_BASE_URL is required")
        self.base_url = resolved_base.rstrip("/")
        self.bearer_token = (bearer_token or "").strip() or None
        self.timeout_seconds = float(timeout_seconds or settings.COMPLIANCE_API_TIMEOUT_SECONDS)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_seconds,
            headers=self._headers(),
            transport=transport,
        )

    async def __aenter__(self) -> "ComplianceApiClient":
        return self

    async def __aexit__(self, *_exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_steps(self, *, project_id: str, deliverable_id: str) -> ComplianceStepsResponse:
        body = await self._request_json(
            "GET",
            f"/vendor/projects/{project_id}/deliverables/{deliverable_id}/compliance-steps",
        )
        return self._parse_model(ComplianceStepsResponse, body, context="list_steps")

    async def save_draft(self, step_id: str, snapshot: ContentSnapshot) -> DraftSavedResponse:
        body = await self._request_json(
            "POST",
            f"/vendor/compliance-steps/{step_id}/save-draft",
            json_payload=snapshot.to_wire(),
        )
        return self._parse_model(DraftSavedResponse, body, context="save_draft")

    async def submit(self, step_id: str, snapshot: ContentSnapshot) -> ComplianceStepResponse:
        body = await self._request_json(
            "POST",
            f"/vendor/compliance-steps/{step_id}/submit",
            json_payload=snapshot.to_wire(),
        )
        return self._parse_model(ComplianceStepResponse, body, context="submit")

    async def _request_json(
        self,
        method: str,
        path: str,
        *,
        json_payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            resp = await self._client.request(method, path, json=json_payload)
        except httpx.HTTPError as exc:
            logger.warning(
                "compliance_api.transport_error",
                extra={"method": method, "path": path, "error": str(exc)},
            )
            raise PersistenceFailure(f"Compliance API request failed for {method} {path}: {exc}") from exc

        if resp.status_code >= 400:
            raise self._error_for(resp, method=method, path=path)

        try:
            data = resp.json()
        except ValueError as exc:
            raise PersistenceFailure(f"Compliance API returned non-JSON payload for {method} {path}") from exc
        if not isinstance(data, dict):
            raise PersistenceFailure(f"Compliance API returned non-object JSON payload for {method} {path}")
        return data

    def _error_for(self, resp: httpx.Response, *, method: str, path: str) -> WorkflowError:
        detail = resp.text
        try:
            payload = resp.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict) and payload.get("detail"):
            detail = str(payload["detail"])
        message = f"{method} {path} failed with status {resp.status_code}: {detail}"

        logger.info(
            "compliance_api.request_failed",
            extra={"method": method, "path": path, "status_code": resp.status_code},
        )
        if resp.status_code == 404:
            return NotFound(message)
        if resp.status_code == 409:
            return InvalidTransition(status="unknown", action=path.rsplit("/", 1)[-1], reason=detail)
        if resp.status_code == 422:
            return WorkflowValidationError(message)
        if resp.status_code in (401, 403):
            return CapabilityError(capability="edit")
        return PersistenceFailure(message)

    @staticmethod
    def _parse_model(model: type[ModelT], payload: dict[str, Any], *, context: str) -> ModelT:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise PersistenceFailure(f"Compliance API response validation failed ({context}): {exc}") from exc

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.bearer_token:
            headers["Authorization"] = f"Bearer {self.bearer_token}"
        return headers
