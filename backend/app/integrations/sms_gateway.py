# app/integrations/sms_gateway.py
"""
SMS delivery for login OTPs.

- `Fast2SmsGateway.send_otp(phone, code)`: POST to Fast2SMS `bulkV2`
  (route `otp`, header `authorization: <api key>`). A request timeout becomes
  `CollaboratorTimeout`; connection errors, non-2xx answers and
  `{"return": false}` bodies become `CollaboratorUnavailable`.
- `LoggingSmsGateway`: used when no API key is configured (local runs, tests);
  it only writes the code to the log.
"""
from __future__ import annotations

import logging
import re
from typing import Optional, Protocol

import requests

from app.config import Settings
from app.core.errors import CollaboratorTimeout, CollaboratorUnavailable

logger = logging.getLogger("grocer.sms")

COLLABORATOR = "sms gateway"


class SmsGateway(Protocol):
    def send_otp(self, phone: str, code: str) -> None: ...


class Fast2SmsGateway:
    def __init__(self, api_key: str, url: str, timeout: float = 10, session: Optional[requests.Session] = None):
        self._api_key = api_key
        self._url = url
        self._timeout = timeout
        self._session = session or requests.Session()

    def send_otp(self, phone: str, code: str) -> None:
        numbers = re.sub(r"\D+", "", phone)
        headers = {"authorization": self._api_key, "Content-Type": "application/json"}
        payload = {"variables_values": code, "route": "otp", "numbers": numbers}

        try:
            resp = self._session.post(self._url, json=payload, headers=headers, timeout=self._timeout)
        except requests.Timeout as exc:
            raise CollaboratorTimeout(COLLABORATOR) from exc
        except requests.RequestException as exc:
            raise CollaboratorUnavailable(COLLABORATOR, f"Fast2SMS connection error: {exc}") from exc

        if resp.status_code >= 300:
            logger.warning("Fast2SMS HTTP %s: %s", resp.status_code, resp.text[:200])
            raise CollaboratorUnavailable(COLLABORATOR, f"Fast2SMS HTTP {resp.status_code}")

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if body.get("return") is False:
            message = body.get("message") or "Failed to send SMS"
            if isinstance(message, list):
                message = "; ".join(map(str, message))
            raise CollaboratorUnavailable(COLLABORATOR, f"Fast2SMS: {message}")
        logger.info("OTP SMS sent to %s", _masked(numbers))


class LoggingSmsGateway:
    def send_otp(self, phone: str, code: str) -> None:
        logger.warning("No SMS provider configured; OTP for %s is %s", _masked(phone), code)


def _masked(phone: str) -> str:
    return f"******{phone[-4:]}" if len(phone) >= 4 else phone


def build_sms_gateway(cfg: Settings) -> SmsGateway:
    if cfg.fast2sms_api_key:
        return Fast2SmsGateway(cfg.fast2sms_api_key, cfg.fast2sms_url, cfg.sms_timeout)
    return LoggingSmsGateway()
