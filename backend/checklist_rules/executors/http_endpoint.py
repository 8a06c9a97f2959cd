"""Call-Endpoint Executor - Outbound HTTP calls for call_endpoint actions"""
from typing import Any, Dict, Optional

import httpx

from ..config.settings import settings
from ..domain.models import WorkflowAction
from ..domain.errors import EndpointCallError, ValidationError
from ..engine.action_dispatcher import ActionContext, ActionExecutor
from ..utils.logger import get_logger

logger = get_logger(__name__)


class HttpEndpointExecutor(ActionExecutor):
    """
    Perform a call_endpoint action with httpx

    Action config (placeholders already resolved):
        url: Target URL (required)
        method: HTTP method, default POST
        headers: Extra request headers
        payload: JSON body
        params: Query string parameters

    The request timeout is the smaller of the configured HTTP timeout and
    the time left before the execution deadline.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: Optional[float] = None
    ):
        self._client = client
        self.timeout_seconds = timeout_seconds or settings.http_timeout_seconds

    async def execute(
        self,
        action: WorkflowAction,
        payload: Dict[str, Any],
        context: ActionContext
    ) -> Dict[str, Any]:
        url = payload.get("url")
        if not url:
            raise ValidationError(
                "call_endpoint action requires a url",
                details={"action_id": action.id}
            )

        method = str(payload.get("method") or "POST").upper()
        headers = {"Content-Type": "application/json", **(payload.get("headers") or {})}
        timeout = self._timeout_for(context)

        logger.info(
            f"Calling endpoint {method} {url}",
            extra={
                "workflow_id": context.workflow_id,
                "execution_id": context.execution_id,
                "action_type": action.type.value,
                "attempt": context.attempt
            }
        )

        try:
            if self._client is not None:
                response = await self._send(self._client, method, url, headers, payload, timeout)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._send(client, method, url, headers, payload, timeout)
        except httpx.HTTPError as e:
            raise EndpointCallError(
                f"Endpoint call failed: {e}",
                details={"url": url, "method": method}
            ) from e

        if response.status_code >= 400:
            raise EndpointCallError(
                f"Endpoint call failed: {response.status_code}",
                details={
                    "url": url,
                    "method": method,
                    "status_code": response.status_code,
                    "response": response.text[:500]
                }
            )

        return {"status_code": response.status_code, "body": self._body(response)}

    @staticmethod
    async def _send(
        client: httpx.AsyncClient,
        method: str,
        url: str,
        headers: Dict[str, str],
        payload: Dict[str, Any],
        timeout: float
    ) -> httpx.Response:
        return await client.request(
            method,
            url,
            headers=headers,
            params=payload.get("params"),
            json=payload.get("payload") if method not in ("GET", "HEAD") else None,
            timeout=timeout
        )

    def _timeout_for(self, context: ActionContext) -> float:
        remaining = context.remaining_seconds()
        if remaining is None:
            return self.timeout_seconds
        return min(self.timeout_seconds, remaining)

    @staticmethod
    def _body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text
