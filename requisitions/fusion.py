import logging
import time
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote

import requests
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

logger = logging.getLogger(__name__)

ACTION_HEADERS = {
    "Content-Type": "application/vnd.oracle.adf.action+json",
    "REST-Framework-Version": "2",
}


class FusionAPIError(Exception):
    """A call to the Fusion REST API failed (transport, auth or remote validation)."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


@dataclass(frozen=True)
class FusionConfig:
    base_url: str
    username: str
    password: str
    version: str = "11.13.18.05"
    timeout: int = 30
    external_ref_field: str = "ExternalReference"

    @classmethod
    def from_settings(cls):
        missing = [
            name for name in ("FUSION_BASE_URL", "FUSION_USERNAME", "FUSION_PASSWORD")
            if not getattr(settings, name, "")
        ]
        if missing:
            raise ImproperlyConfigured(f"Missing Fusion settings: {', '.join(missing)}")

        return cls(
            base_url=settings.FUSION_BASE_URL.rstrip("/"),
            username=settings.FUSION_USERNAME,
            password=settings.FUSION_PASSWORD,
            version=getattr(settings, "FUSION_REST_VERSION", cls.version),
            timeout=getattr(settings, "FUSION_TIMEOUT", cls.timeout),
            external_ref_field=getattr(settings, "FUSION_EXTERNAL_REF_FIELD", cls.external_ref_field),
        )

    @property
    def api_root(self):
        return f"{self.base_url}/fscmRestApi/resources/{self.version}"


def remote_id_from(response: Optional[dict]) -> Optional[str]:
    if not response:
        return None
    for key in ("RequisitionHeaderId", "Id", "id"):
        value = response.get(key)
        if value not in (None, ""):
            return str(value)
    return None


def _error_message(exc: requests.RequestException) -> tuple:
    response = getattr(exc, "response", None)
    if response is None:
        return str(exc), None, None

    try:
        body = response.json()
    except ValueError:
        body = response.text or None

    message = None
    if isinstance(body, dict):
        message = body.get("detail") or body.get("title")
    return message or str(exc), response.status_code, body


class FusionClient:
    """
    Thin wrapper over the Oracle Fusion procurement REST resources.

    Every public call either returns the decoded JSON body or raises
    FusionAPIError; timeouts and connection errors are reported the same way.
    """

    def __init__(self, config: FusionConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()
        self.session.auth = (config.username, config.password)
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    def _request(self, method, path, **kwargs):
        url = f"{self.config.api_root}{path}"
        start = time.time()
        try:
            response = self.session.request(method, url, timeout=self.config.timeout, **kwargs)
            response.raise_for_status()
        except requests.RequestException as exc:
            message, status_code, details = _error_message(exc)
            logger.error(
                "fusion_call_failed",
                extra={
                    "error": message,
                    "status": status_code,
                    "duration_sec": round(time.time() - start, 4),
                },
            )
            raise FusionAPIError(message, status_code=status_code, details=details) from exc

        logger.info(
            f"fusion_call {method} {path}",
            extra={"status": response.status_code, "duration_sec": round(time.time() - start, 4)},
        )
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            # Gateways and SSO pages can answer 2xx with HTML
            logger.error(
                "fusion_invalid_json",
                extra={"status": response.status_code, "error": response.text[:200]},
            )
            raise FusionAPIError(
                "Invalid JSON response from Fusion",
                status_code=response.status_code,
                details=response.text,
            ) from exc

    def create_requisition(self, payload: dict) -> dict:
        return self._request("POST", "/purchaseRequisitions", json=payload)

    def derive_charge_account(self, remote_id: str) -> Optional[dict]:
        # Fusion may reject submission without a charge account; failures here are not fatal
        path = f"/purchaseRequisitions/{quote(str(remote_id), safe='')}/action/deriveChargeAccount"
        try:
            return self._request("POST", path, json={}, headers=ACTION_HEADERS)
        except FusionAPIError as exc:
            logger.warning("derive_charge_account_failed", extra={"error": exc.message})
            return None

    def submit_requisition(self, remote_id: str) -> dict:
        self.derive_charge_account(remote_id)
        path = f"/purchaseRequisitions/{quote(str(remote_id), safe='')}/action/submitRequisition"
        return self._request("POST", path, json={}, headers=ACTION_HEADERS)

    def find_by_external_reference(self, reference: str) -> dict:
        query = f"{self.config.external_ref_field}='{reference}'"
        return self._request("GET", "/purchaseRequisitions", params={"q": query})

    def get_requisition(self, remote_id: str) -> dict:
        return self._request("GET", f"/purchaseRequisitions/{quote(str(remote_id), safe='')}")


def get_fusion_client() -> FusionClient:
    return FusionClient(FusionConfig.from_settings())
