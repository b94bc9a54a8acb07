from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

import requests

from .config import HTTP_TIMEOUT_SECONDS
from .errors import NetworkError, ProviderTimeoutError, error_from_status
from .stores import TtlCache
from .utils import _log_debug

logger = logging.getLogger(__name__)


class JsonApiClient:
  """Blocking JSON-over-HTTP client shared by the REST provider adapters.

  Failed statuses are raised through ``error_from_status`` so that callers see
  a structured error kind instead of a message to pattern-match.
  """

  service = "the service"

  def __init__(self,
               base_url: str,
               cache: Optional[TtlCache] = None,
               session: Optional[requests.Session] = None,
               timeout: float = HTTP_TIMEOUT_SECONDS) -> None:
    self.base_url = base_url.rstrip("/")
    self.cache = cache if cache is not None else TtlCache()
    self.session = session or requests.Session()
    self.timeout = timeout

  def auth(self) -> Tuple[Dict[str, str], Optional[Tuple[str, str]]]:
    return {}, None

  def request(self,
              method: str,
              path: str,
              params: Optional[Dict[str, Any]] = None,
              json: Optional[Dict[str, Any]] = None) -> Any:
    headers, basic = self.auth()
    headers = {"Accept": "application/json", **headers}
    url = f"{self.base_url}/{path.lstrip('/')}"
    _log_debug(f"[{self.service}] {method} {url} params={params}")
    try:
      resp = self.session.request(method,
                                  url,
                                  params=params,
                                  json=json,
                                  headers=headers,
                                  auth=basic,
                                  timeout=self.timeout)
    except requests.Timeout as exc:
      raise ProviderTimeoutError(f"{self.service} request timed out",
                                 service=self.service) from exc
    except requests.ConnectionError as exc:
      raise NetworkError(f"{self.service} connection failed: {exc}",
                         service=self.service) from exc

    if not resp.ok:
      body = (resp.text or "")[:300]
      logger.warning("%s %s %s failed: %s %s", self.service, method, path,
                     resp.status_code, body)
      raise error_from_status(resp.status_code,
                              f"{self.service} API error: {resp.status_code} {body}",
                              self.service)
    if resp.status_code == 204 or not resp.content:
      return {}
    return resp.json()

  def cached(self, key: Any, max_age: float) -> Any:
    return self.cache.get((self.service, key), max_age=max_age)

  def remember(self, key: Any, value: Any) -> Any:
    self.cache.set((self.service, key), value)
    return value

  def invalidate(self) -> None:
    self.cache.clear(self.service)
