from __future__ import annotations

import json
import logging
import time
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


class CrmApiError(RuntimeError):
    pass


class CrmApiRateLimited(CrmApiError):
    pass


@dataclass(frozen=True)
class CrmApiClient:
    base_url: str
    token: str = ""
    timeout_seconds: int = 30

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request_json(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        payload: Any = None,
        retries: int = 0,
    ) -> Any:
        url = self.base_url.rstrip("/") + path
        if params:
            url += "?" + urllib.parse.urlencode({k: v for k, v in params.items() if v is not None})
        body = json.dumps(payload).encode("utf-8") if payload is not None else None

        last_err: Exception | None = None
        for attempt in range(retries + 1):
            try:
                req = urllib.request.Request(url, data=body, method=method)
                for k, v in self._headers().items():
                    req.add_header(k, v)
                if body is not None:
                    req.add_header("Content-Type", "application/json")
                with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                    raw = resp.read()
                    if not raw:
                        return None
                    try:
                        return json.loads(raw.decode("utf-8"))
                    except Exception as e:
                        raise CrmApiError(f"Invalid JSON from CRM API ({method} {path})") from e
            except urllib.error.HTTPError as e:
                if e.code == 429 and attempt < retries:
                    time.sleep(min(2 * (attempt + 1), 10))
                    last_err = CrmApiRateLimited("Rate limited (429)")
                    continue
                try:
                    detail = e.read().decode("utf-8", errors="ignore")
                except Exception:
                    detail = ""
                if e.code == 429:
                    raise CrmApiRateLimited(f"Rate limited (429): {detail[:300]}") from e
                raise CrmApiError(f"HTTP {e.code} from CRM API ({method} {path}): {detail[:300]}") from e
            except CrmApiError:
                raise
            except Exception as e:
                last_err = e
                if attempt < retries:
                    logger.warning("CRM API %s %s failed (attempt %d): %s", method, path, attempt + 1, e)
                    time.sleep(min(1 * (attempt + 1), 5))
        raise CrmApiError(f"CRM API request failed after retries: {last_err}")

    def list_customers(self) -> Any:
        """Raw customer collection (bare list or a results/data envelope)."""
        return self.request_json("GET", "/clients/clients/", retries=2)

    def update_customer(self, customer_id: int, payload: dict[str, Any]) -> Any:
        return self.request_json("PUT", f"/clients/clients/{int(customer_id)}/", payload=payload)
