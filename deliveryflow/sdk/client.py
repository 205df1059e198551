# =====================
# 📁 sdk/client.py
# =====================
import json
import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from .exceptions import (
    APIError,
    AuthenticationError,
    ConflictError,
    DeliveryFlowSDKError,
    NotFoundError,
    RequestTimeoutError,
)
from .models import SDKApprovalRequest, SDKExecutionStatus, SDKPipelineDefinition, SDKStartExecutionResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60


class DeliveryFlowClient:
    def __init__(self,
                 base_url: Optional[str] = None,
                 api_key: Optional[str] = None,
                 timeout: float = DEFAULT_TIMEOUT_SECONDS,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initializes the deliveryflow API client.
        :param base_url: The base URL of the deliveryflow API.
        :param api_key: The API key for authentication.
        :param timeout: Request timeout in seconds.
        :param transport: Optional httpx transport (tests pass an httpx.MockTransport).
        """
        self.base_url = base_url or os.getenv("DELIVERYFLOW_API_BASE_URL")
        self.api_key = api_key or os.getenv("DELIVERYFLOW_API_KEY")

        if not self.base_url:
            err_msg = "deliveryflow API base_url must be provided or set via DELIVERYFLOW_API_BASE_URL."
            logger.critical(err_msg)
            raise ValueError(err_msg)

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        else:
            logger.warning("DELIVERYFLOW_API_KEY not set. Client will make unauthenticated requests.")

        self.http_client = httpx.AsyncClient(base_url=self.base_url, headers=headers, timeout=timeout,
                                             transport=transport)
        logger.info(f"DeliveryFlowClient initialized for base URL: {self.base_url}")

    async def close(self):
        await self.http_client.aclose()
        logger.info("DeliveryFlowClient HTTP client closed.")

    async def __aenter__(self) -> "DeliveryFlowClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request(self, method: str, endpoint: str, json_data: Optional[Dict] = None,
                       params: Optional[Dict] = None) -> Any:
        try:
            logger.debug(f"SDK Request: {method} {endpoint} - Params: {params} - JSON: {str(json_data)[:200]}")
            response = await self.http_client.request(method, endpoint, json=json_data, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            error_body_text = e.response.text
            logger.error(f"API Error: {status_code} calling {e.request.url}. Response: {error_body_text[:500]}")
            if status_code == 401:
                raise AuthenticationError(status_code=status_code, error_body=error_body_text) from e
            if status_code == 403:
                raise AuthenticationError(message="Forbidden.", status_code=status_code, error_body=error_body_text) from e
            if status_code == 404:
                raise NotFoundError(status_code=status_code, error_body=error_body_text) from e
            if status_code == 409:
                raise ConflictError(error_body=error_body_text) from e
            raise APIError(message=f"API request failed: {status_code}", status_code=status_code,
                           error_body=error_body_text) from e
        except httpx.TimeoutException as e:
            logger.error(f"Request Timeout: {method} {endpoint}")
            raise RequestTimeoutError(message=f"Request to {endpoint} timed out.") from e
        except httpx.RequestError as e:
            logger.error(f"Request Error: {method} {endpoint} - {e}")
            raise APIError(message=f"Request failed: {e}") from e
        except json.JSONDecodeError as e:
            logger.error(f"JSON Decode Error: {e}")
            raise DeliveryFlowSDKError(message=f"Failed to parse JSON response: {e}") from e

    async def list_pipelines(self) -> List[SDKPipelineDefinition]:
        return await self._request("GET", "/api/pipelines")

    async def get_pipeline(self, pipeline_name: str) -> SDKPipelineDefinition:
        return await self._request("GET", f"/api/pipelines/{pipeline_name}")

    async def start_execution(self, pipeline_name: str) -> SDKStartExecutionResponse:
        logger.info(f"SDK: Starting execution of pipeline '{pipeline_name}'")
        return await self._request("POST", f"/api/pipelines/{pipeline_name}/executions")

    async def get_execution(self, execution_id: str) -> SDKExecutionStatus:
        return await self._request("GET", f"/api/executions/{execution_id}")

    async def resolve_approval(self, execution_id: str, approved: bool,
                               approver: Optional[str] = None) -> SDKExecutionStatus:
        logger.info(f"SDK: {'Approving' if approved else 'Rejecting'} execution '{execution_id}'")
        payload = {"approved": approved, "approver": approver}
        return await self._request("POST", f"/api/executions/{execution_id}/approval", json_data=payload)

    async def abort_execution(self, execution_id: str, reason: Optional[str] = None) -> SDKExecutionStatus:
        logger.info(f"SDK: Aborting execution '{execution_id}'")
        return await self._request("POST", f"/api/executions/{execution_id}/abort", json_data={"reason": reason})

    async def list_pending_approvals(self) -> List[SDKApprovalRequest]:
        return await self._request("GET", "/api/approvals")
