"""
Thin Azure Resource Manager REST client.

Reads and writes provider-native resource documents. The bearer token comes
from the caller (normally `az account get-access-token`).
"""

import logging
import time
from collections.abc import Callable
from typing import Any

import requests

from azmigrate.cloud.azure.defaults import (
    ARM_ENDPOINT,
    POLL_INTERVAL_SECONDS,
    POLL_TIMEOUT_SECONDS,
)
from azmigrate.cloud.cloud_api import CloudApiError

logger = logging.getLogger(__name__)

Json = dict[str, Any]

TERMINAL_STATES = {"succeeded", "failed", "canceled"}


class ArmClient:
    def __init__(
        self,
        token_provider: Callable[[], str],
        endpoint: str = ARM_ENDPOINT,
        session: requests.Session | None = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        timeout: float = POLL_TIMEOUT_SECONDS,
    ):
        self.token_provider = token_provider
        self.endpoint = endpoint.rstrip("/")
        self.session = session or requests.Session()
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._token: str | None = None

    def _url(self, resource_id: str, api_version: str) -> str:
        return f"{self.endpoint}{resource_id}?api-version={api_version}"

    def _headers(self) -> dict[str, str]:
        if self._token is None:
            self._token = self.token_provider()
        return {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(
                method, url, headers=self._headers(), timeout=60, **kwargs
            )
        except requests.RequestException as e:
            raise CloudApiError(f"{method} {url} failed: {e}") from e

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        response = self._send(method, url, **kwargs)
        if response.status_code == 401:
            # Token expired mid-run
            logger.info("ARM token rejected, refreshing")
            self._token = None
            response = self._send(method, url, **kwargs)
        return response

    @staticmethod
    def _json(response: requests.Response, what: str) -> Json:
        try:
            body = response.json()
        except ValueError as e:
            raise CloudApiError(f"{what} returned a non-JSON body") from e
        if not isinstance(body, dict):
            raise CloudApiError(
                f"{what} returned {type(body).__name__}, not an object"
            )
        return body

    @staticmethod
    def _raise_for_status(response: requests.Response, what: str) -> None:
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            detail = response.text
            try:
                error = response.json().get("error") or {}
                detail = f"{error.get('code')}: {error.get('message')}"
            except ValueError:
                pass
            raise CloudApiError(
                f"{what} failed ({response.status_code}): {detail}"
            ) from e

    def get(self, resource_id: str, api_version: str) -> Json | None:
        """GET a resource document. Returns None on 404."""
        response = self._request("GET", self._url(resource_id, api_version))
        if response.status_code == 404:
            return None
        self._raise_for_status(response, f"GET {resource_id}")
        return self._json(response, f"GET {resource_id}")

    def put(self, resource_id: str, api_version: str, body: Json) -> Json:
        """PUT a resource document and wait for provisioning to finish."""
        logger.info(f"Submitting {resource_id}")
        response = self._request(
            "PUT", self._url(resource_id, api_version), json=body
        )
        self._raise_for_status(response, f"PUT {resource_id}")
        return self.wait_for_provisioning(response, resource_id, api_version)

    def wait_for_provisioning(
        self,
        response: requests.Response,
        resource_id: str,
        api_version: str,
    ) -> Json:
        """Poll a long-running operation until it reaches a terminal state.

        Uses the Azure-AsyncOperation header when ARM returns one, otherwise
        polls the resource's provisioningState.

        Raises:
            CloudApiError: If the operation fails or times out
        """
        operation_url = response.headers.get("Azure-AsyncOperation")
        deadline = time.monotonic() + self.timeout

        if operation_url:
            while True:
                status_response = self._request("GET", operation_url)
                what = f"poll operation for {resource_id}"
                self._raise_for_status(status_response, what)
                operation = self._json(status_response, what)
                status = (operation.get("status") or "").lower()
                if status in TERMINAL_STATES:
                    if status != "succeeded":
                        error = operation.get("error") or {}
                        raise CloudApiError(
                            f"Provisioning {resource_id} {status}: "
                            f"{error.get('message', 'no details')}"
                        )
                    break
                self._sleep_or_timeout(deadline, resource_id)

        while True:
            document = self.get(resource_id, api_version)
            if document is None:
                raise CloudApiError(f"{resource_id} missing after PUT")
            state = (
                (document.get("properties") or {}).get("provisioningState")
                or "Succeeded"
            ).lower()
            if state in TERMINAL_STATES:
                if state != "succeeded":
                    raise CloudApiError(f"Provisioning {resource_id} {state}")
                return document
            self._sleep_or_timeout(deadline, resource_id)

    def _sleep_or_timeout(self, deadline: float, resource_id: str) -> None:
        if time.monotonic() >= deadline:
            raise CloudApiError(
                f"Timed out after {self.timeout}s waiting for {resource_id}"
            )
        logger.info(
            f"{resource_id} still provisioning, "
            f"retrying in {self.poll_interval}s..."
        )
        time.sleep(self.poll_interval)
