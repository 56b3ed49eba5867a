from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from .crud import CRUD
from .env_loader import load_env_files
from .exceptions import MissingCredentialsError
from .normalize import Record
from .soap import SoapParam, build_envelope, parse_response

__license__ = "MIT"

_logger = logging.getLogger(__name__)

# Ensure .env is loaded for library use as well (e.g., scripts importing SalesforceAPI)
load_env_files(quiet=True)


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else default


def _int_env(name: str) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else None


# ----------------------------------------------------------------------
# Configuration dataclass
# ----------------------------------------------------------------------
@dataclass
class SFConfig:
    """Configuration for the Salesforce Partner SOAP API."""

    # Base login URL (not the instance URL)
    login_url: str = "https://login.salesforce.com"

    username: Optional[str] = None
    password: Optional[str] = None
    security_token: Optional[str] = None

    # Optional: pre-provided session / instance URL (skips login)
    session_id: Optional[str] = None
    instance_url: Optional[str] = None

    api_version: str = "60.0"

    # Pause before each queryMore(); 0 means no pause
    page_delay: float = 0.0

    # QueryOptions batchSize header; None lets the server decide (default 500)
    query_batch_size: Optional[int] = None

    @classmethod
    def from_env(cls) -> SFConfig:
        """Load configuration from environment variables."""
        return cls(
            login_url=os.getenv("SF_LOGIN_URL", "https://login.salesforce.com"),
            username=os.getenv("SF_USERNAME"),
            password=os.getenv("SF_PASSWORD"),
            security_token=os.getenv("SF_SECURITY_TOKEN"),
            session_id=os.getenv("SF_SESSION_ID"),
            instance_url=os.getenv("SF_INSTANCE_URL"),
            api_version=os.getenv("SF_API_VERSION", "60.0").lstrip("v"),
            page_delay=_float_env("SF_PAGE_DELAY", 0.0),
            query_batch_size=_int_env("SF_QUERY_BATCH_SIZE"),
        )


# ----------------------------------------------------------------------
# Main API client
# ----------------------------------------------------------------------
class SalesforceAPI(CRUD):
    """Salesforce Partner SOAP API client with CRUD helpers."""

    def __init__(
        self,
        cfg: Optional[SFConfig] = None,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.cfg = cfg or SFConfig.from_env()
        self.session = requests.Session()
        self.session_id: Optional[str] = None
        self.server_url: Optional[str] = None
        self.page_delay = self.cfg.page_delay
        self.cancel_event = cancel_event

    # --------------------------- Public methods -----------------------

    def connect(self) -> None:
        """Log in, or reuse a session id from the configuration."""
        if self.cfg.session_id and self.cfg.instance_url:
            _logger.debug("Using existing session id from configuration.")
            self.session_id = self.cfg.session_id
            self.server_url = self._soap_url(self.cfg.instance_url)
        else:
            _logger.info("Performing SOAP login as %s", self.cfg.username)
            self._login()

        if not self.session_id or not self.server_url:
            raise RuntimeError("Login did not yield sessionId and serverUrl.")
        _logger.info("Connected to Salesforce endpoint=%s", self.server_url)

    @property
    def instance_url(self) -> Optional[str]:
        if not self.server_url:
            return None
        return self.server_url.split("/services/")[0]

    # --------------------------- Internal helpers --------------------

    def _soap_url(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}/services/Soap/u/{self.cfg.api_version}"

    def _login(self) -> None:
        missing = [
            k
            for k, v in {
                "SF_USERNAME": self.cfg.username,
                "SF_PASSWORD": self.cfg.password,
                "SF_LOGIN_URL": self.cfg.login_url,
            }.items()
            if not v
        ]
        if missing:
            raise MissingCredentialsError(missing)

        password = f"{self.cfg.password}{self.cfg.security_token or ''}"
        body = build_envelope(
            "login",
            [SoapParam("username", self.cfg.username), SoapParam("password", password)],
        )
        r = self._post(self._soap_url(self.cfg.login_url), body, "login")
        result, _headers = parse_response(r.content)

        if not isinstance(result, dict) or not result.get("sessionId") or not result.get("serverUrl"):
            raise RuntimeError("Login response did not contain sessionId and serverUrl.")
        self.session_id = result["sessionId"]
        self.server_url = result["serverUrl"]

    def _soap_headers(self, operation: str) -> Dict[str, Dict[str, Any]]:
        headers: Dict[str, Dict[str, Any]] = {"SessionHeader": {"sessionId": self.session_id}}
        if self.cfg.query_batch_size and operation in ("query", "queryAll", "queryMore"):
            headers["QueryOptions"] = {"batchSize": self.cfg.query_batch_size}
        return headers

    def _call(self, operation: str, *params: SoapParam) -> Tuple[Any, Dict[str, Any]]:
        """Invoke one Partner API operation and return (result, headers)."""
        if not self.session_id:
            self.connect()

        body = build_envelope(operation, params, headers=self._soap_headers(operation))
        r = self._post(self.server_url, body, operation)
        result, headers = parse_response(r.content)
        _logger.debug("%s returned headers %s", operation, headers)
        return result, headers

    def _prepare_sobjects(self, records: Sequence[Record]) -> List[SoapParam]:
        """Wrap records as sObjects parameters; None values become fieldsToNull."""
        return [SoapParam("sObjects", dict(rec)) for rec in records]

    # --------------------------- HTTP wrapper ------------------------

    def _post(
        self,
        url: Optional[str],
        body: bytes,
        operation: str,
        *,
        retries: int = 3,
        backoff: float = 0.8,
        timeout: float = 120.0,
    ) -> requests.Response:
        """POST an envelope with retry and logging."""
        if not url:
            raise RuntimeError("No SOAP endpoint; call connect() first.")
        headers = {"Content-Type": "text/xml; charset=UTF-8", "SOAPAction": operation}

        for attempt in range(1, retries + 1):
            try:
                r = self.session.post(url, data=body, headers=headers, timeout=timeout)
            except requests.RequestException as e:
                _logger.warning("Request error (attempt %d/%d): %s", attempt, retries, e)
                if attempt == retries:
                    raise
                time.sleep(backoff * attempt)
                continue

            # SOAP faults come back as HTTP 500 with an envelope; let the parser raise
            if r.status_code < 400 or (r.status_code == 500 and b"Fault" in r.content):
                return r

            if r.status_code in (429, 500, 502, 503, 504) and attempt < retries:
                _logger.warning("HTTP %s -> retrying %d/%d", r.status_code, attempt, retries)
                time.sleep(backoff * attempt)
                continue

            _logger.error("HTTP %s error for %s: %s", r.status_code, operation, r.text)
            r.raise_for_status()
        raise RuntimeError("Exceeded maximum retries.")
