from __future__ import annotations

import json
import os
import ssl
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping

from flask import current_app


class RecordClientError(RuntimeError):
    pass


class RecordClient(ABC):
    """Transition API of the remote system of record.

    Every method returns the raw record projection (full or trimmed) the
    server answered with; callers fold it in through the merger.
    """

    @abstractmethod
    def fetch_request(self, request_id: str) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def fetch_approval_history(self, request_id: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def submit(self, request_id: str) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def approve(self, request_id: str, comment: str | None = None) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def reject(self, request_id: str, comment: str) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def add_quote(
        self,
        request_id: str,
        vendor_name: str,
        quote_total: float,
        file_url: str,
        notes: str | None = None,
    ) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def select_quote(self, request_id: str, quote_id: str | None = None, auto_lowest: bool = False) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def mark_project_done(self, request_id: str) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def confirm_client_paid(self, request_id: str, payout_reference: str | None = None) -> Dict[str, Any]:
        raise NotImplementedError


def _wire_id(value: str) -> object:
    raw = str(value).strip()
    return int(raw) if raw.isdigit() else raw


class HttpRecordClient(RecordClient):
    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        api_key: str | None = None,
        timeout_seconds: int = 20,
        verify_ssl: bool = True,
    ) -> None:
        if not base_url:
            raise RecordClientError("RECORD_BASE_URL is not configured.")
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.api_key = api_key
        self.timeout_seconds = int(timeout_seconds)
        self.verify_ssl = bool(verify_ssl)

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    @staticmethod
    def _quote_id(request_id: str) -> str:
        return urllib.parse.quote(str(request_id), safe="")

    def fetch_request(self, request_id: str) -> Dict[str, Any]:
        return _as_record(self._request_json("GET", self._url(f"requests/{self._quote_id(request_id)}")))

    def fetch_approval_history(self, request_id: str) -> List[Dict[str, Any]]:
        data = self._request_json("GET", self._url(f"approvals/{self._quote_id(request_id)}/history"))
        if isinstance(data, list):
            return [row for row in data if isinstance(row, dict)]
        return []

    def submit(self, request_id: str) -> Dict[str, Any]:
        return self._post(f"requests/{self._quote_id(request_id)}/submit")

    def approve(self, request_id: str, comment: str | None = None) -> Dict[str, Any]:
        payload = {"comment": comment} if comment else {}
        return self._post(f"approvals/{self._quote_id(request_id)}/approve", payload)

    def reject(self, request_id: str, comment: str) -> Dict[str, Any]:
        return self._post(f"approvals/{self._quote_id(request_id)}/reject", {"comment": comment})

    def add_quote(
        self,
        request_id: str,
        vendor_name: str,
        quote_total: float,
        file_url: str,
        notes: str | None = None,
    ) -> Dict[str, Any]:
        payload = {
            "vendor_name": vendor_name,
            "quote_total": quote_total,
            "file_url": file_url,
            "notes": notes,
        }
        payload = {k: v for k, v in payload.items() if v is not None}
        return self._post(f"requests/{self._quote_id(request_id)}/quotes", payload)

    def select_quote(self, request_id: str, quote_id: str | None = None, auto_lowest: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"auto_lowest": True} if auto_lowest else {"quote_id": _wire_id(str(quote_id))}
        return self._post(f"approvals/{self._quote_id(request_id)}/select-quote", payload)

    def mark_project_done(self, request_id: str) -> Dict[str, Any]:
        return self._post(f"approvals/{self._quote_id(request_id)}/mark-done")

    def confirm_client_paid(self, request_id: str, payout_reference: str | None = None) -> Dict[str, Any]:
        payload = {"payout_reference": payout_reference} if payout_reference else None
        return self._post(f"approvals/{self._quote_id(request_id)}/confirm-paid", payload)

    def _post(self, path: str, payload: dict | None = None) -> Dict[str, Any]:
        return _as_record(self._request_json("POST", self._url(path), payload=payload))

    def _request_json(self, method: str, url: str, payload: dict | None = None) -> object:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if self.api_key:
            headers["X-API-Key"] = self.api_key

        data = None
        if payload is not None:
            headers["Content-Type"] = "application/json"
            data = json.dumps(payload, separators=(",", ":"), ensure_ascii=True).encode("utf-8")

        request = urllib.request.Request(url, data=data, headers=headers, method=method.upper())

        context = None
        if not self.verify_ssl:
            context = ssl._create_unverified_context()

        try:
            with urllib.request.urlopen(request, timeout=self.timeout_seconds, context=context) as response:
                body = response.read().decode("utf-8")
        except urllib.error.HTTPError as exc:  # noqa: PERF203
            error_body = exc.read().decode("utf-8") if exc.fp else ""
            raise RecordClientError(f"Record HTTP {exc.code}: {_error_text(error_body)[:200]}") from exc
        except urllib.error.URLError as exc:
            raise RecordClientError(f"Connection error reaching the system of record: {exc.reason}") from exc
        except TimeoutError as exc:
            raise RecordClientError("Timed out waiting for the system of record.") from exc

        if not body:
            return {}
        try:
            decoded = json.loads(body)
        except json.JSONDecodeError as exc:
            raise RecordClientError("System of record returned malformed JSON.") from exc
        return unwrap_envelope(decoded)


def unwrap_envelope(decoded: object) -> object:
    """Return ``data`` from a ``{success, data, error}`` envelope.

    Bodies without the envelope are returned as they came.
    """
    if not isinstance(decoded, dict) or "success" not in decoded:
        return decoded
    if decoded.get("success") is False:
        error = decoded.get("error") if isinstance(decoded.get("error"), dict) else {}
        code = error.get("code")
        message = str(error.get("message") or "operacao recusada").strip()
        if isinstance(code, int) and 400 <= code < 600:
            raise RecordClientError(f"Record HTTP {code}: {message[:200]}")
        raise RecordClientError(f"Record rejected: {message[:200]}")
    data = decoded.get("data")
    return {} if data is None else data


def _error_text(body: str) -> str:
    try:
        decoded = json.loads(body) if body else {}
    except json.JSONDecodeError:
        return body
    if isinstance(decoded, dict):
        error = decoded.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if decoded.get("message"):
            return str(decoded["message"])
    return body


def _as_record(payload: object) -> Dict[str, Any]:
    if isinstance(payload, dict):
        return payload
    raise RecordClientError("Unexpected response from the system of record (JSON is not an object).")


def build_record_client(config: Mapping[str, Any] | None = None) -> RecordClient:
    mode = str(_get_config(config, "RECORD_MODE", "mock") or "mock").strip().lower()
    if mode == "mock":
        from request_tracker.record_mock import MockRecordClient

        return MockRecordClient.with_demo_data()
    if mode != "http":
        raise RecordClientError(f"Unsupported RECORD_MODE: {mode}")
    return HttpRecordClient(
        str(_get_config(config, "RECORD_BASE_URL", "") or ""),
        token=_get_config(config, "RECORD_TOKEN"),
        api_key=_get_config(config, "RECORD_API_KEY"),
        timeout_seconds=_int_config(config, "RECORD_TIMEOUT_SECONDS", 20),
        verify_ssl=_bool_config(config, "RECORD_VERIFY_SSL", True),
    )


def _get_config(config: Mapping[str, Any] | None, key: str, default: Any = None) -> Any:
    if config is not None:
        return config.get(key, default)
    try:
        return current_app.config.get(key, default)
    except RuntimeError:
        return os.environ.get(key, default)


def _int_config(config: Mapping[str, Any] | None, key: str, default: int) -> int:
    value = _get_config(config, key, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _bool_config(config: Mapping[str, Any] | None, key: str, default: bool) -> bool:
    value = _get_config(config, key, default)
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "on"}
