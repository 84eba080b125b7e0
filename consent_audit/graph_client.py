import logging
from typing import Any, Dict, Iterator, Optional

import msal
import requests

from .config import Config, config as default_config
from .errors import (
    AuthenticationError,
    ConfigurationError,
    GraphError,
    MalformedResponseError,
)


class GraphClient:
    def __init__(
        self, settings: Optional[Config] = None, access_token: Optional[str] = None
    ):
        self.settings = settings or default_config
        self.base_url = self.settings.GRAPH_BASE.rstrip("/")
        self.timeout = self.settings.TIMEOUT
        self.token = access_token or self.settings.ACCESS_TOKEN or self._get_token()
        self.session = requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {self.token}"})

    def _get_token(self) -> str:
        missing = [
            name
            for name, value in (
                ("AZ_TENANT_ID", self.settings.TENANT_ID),
                ("AZ_CLIENT_ID", self.settings.CLIENT_ID),
                ("AZ_CLIENT_SECRET", self.settings.CLIENT_SECRET),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing credentials: {', '.join(missing)} (or set GRAPH_ACCESS_TOKEN)"
            )

        app = msal.ConfidentialClientApplication(
            self.settings.CLIENT_ID,
            authority=self.settings.authority,
            client_credential=self.settings.CLIENT_SECRET,
        )
        result = app.acquire_token_for_client(scopes=self.settings.GRAPH_SCOPES)
        if "access_token" not in result:
            raise AuthenticationError(
                f"Failed to acquire token: {result.get('error_description') or result}"
            )
        return result["access_token"]

    def _full_url(self, path_or_url: str) -> str:
        if path_or_url.startswith("https://") or path_or_url.startswith("http://"):
            return path_or_url
        return f"{self.base_url}/{path_or_url.lstrip('/')}"

    def get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        full = self._full_url(url)
        logging.debug("GET %s %s", full, params or "")
        resp = self.session.get(full, params=params, timeout=self.timeout)
        if resp.status_code >= 400:
            logging.debug("Graph API error %s: %s", resp.status_code, resp.text[:400])
            raise GraphError(
                resp.status_code, full, f"Graph API error {resp.status_code}: {resp.text[:400]}"
            )
        try:
            return resp.json()
        except ValueError as e:
            raise MalformedResponseError(
                resp.status_code, full, f"Could not deserialize response from {full}: {e}"
            ) from e

    def paged_get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        page_limit: Optional[int] = None,
    ) -> Iterator[Dict[str, Any]]:
        pages = 0
        while url:
            data = self.get(url, params)
            yield from data.get("value", [])
            pages += 1
            if page_limit and pages >= page_limit:
                break
            url = data.get("@odata.nextLink")
            # nextLink already carries the query
            params = None
