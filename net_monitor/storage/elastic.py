"""Elasticsearch result store over the REST API."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import requests

from ..config import ElasticConfig
from ..errors import StoreError, StoreProvisioningError
from ..interfaces import ResultStore
from ..models import CombinedDocument

LOGGER = logging.getLogger(__name__)

SCHEMA_VERSION = "v1"


def index_template(prefix: str) -> Dict[str, Any]:
    """Index template applied to every yearly ``<prefix>-v1-*`` index."""
    return {
        "index_patterns": f"{prefix}-{SCHEMA_VERSION}-*",
        "mappings": {
            "_source": {"enabled": True},
            "dynamic_templates": [
                {
                    "logtext": {
                        "match_mapping_type": "string",
                        "mapping": {"type": "keyword"},
                    }
                }
            ],
            "properties": {
                "result": {
                    "properties": {
                        "timestamp": {"type": "date"},
                        "interface": {
                            "properties": {
                                "internalIp": {"type": "ip"},
                                "externalIp": {"type": "ip"},
                            }
                        },
                        "server": {"properties": {"ip": {"type": "ip"}}},
                    }
                },
                "location": {
                    "properties": {
                        "ip": {"type": "ip"},
                        "geo_point": {"type": "geo_point"},
                    }
                },
            },
        },
    }


def index_name(prefix: str, document: CombinedDocument) -> str:
    """Yearly index for ``document``; unparsable timestamps go to the unbucketed index."""
    name = f"{prefix}-{SCHEMA_VERSION}"
    timestamp = document.result.parsed_timestamp
    if timestamp is not None:
        name += f"-{timestamp.year:04d}"
    return name


def _error_reason(body: Dict[str, Any]) -> Optional[str]:
    error = body.get("error")
    if not error:
        return None
    if isinstance(error, dict):
        for cause in error.get("root_cause") or []:
            if cause.get("reason"):
                return cause["reason"]
        return error.get("reason") or error.get("type") or json.dumps(error)
    return str(error)


class ElasticResultStore(ResultStore):
    def __init__(self, config: ElasticConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.base_url = config.host.rstrip("/")
        self.session = session or requests.Session()
        if config.user:
            self.session.auth = (config.user, config.password)
        self.session.verify = config.verify_certs
        self.session.headers.update({"Content-Type": "application/json"})

    def _put(self, path: str, body: Dict[str, Any], error_type: type, **params: str) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.put(
                url,
                data=json.dumps(body),
                params=params or None,
                timeout=self.config.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise error_type(f"request to {url} failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        reason = _error_reason(payload) if isinstance(payload, dict) else None
        if reason:
            raise error_type(reason)
        if response.status_code >= 400:
            raise error_type(f"{url} returned HTTP {response.status_code}")
        return payload

    def provision(self) -> None:
        prefix = self.config.index_prefix
        self._put(f"/_template/{prefix}", index_template(prefix), StoreProvisioningError)
        LOGGER.info("Index template %s installed on %s", prefix, self.base_url)

    def submit(self, document: CombinedDocument) -> None:
        if not document.document_id:
            raise StoreError("document has no result id")
        index = index_name(self.config.index_prefix, document)
        payload = self._put(
            f"/{index}/_doc/{document.document_id}",
            document.to_dict(),
            StoreError,
            refresh="true",
        )
        LOGGER.info(
            "Indexed result %s into %s (%s)",
            document.document_id,
            index,
            payload.get("result", "unknown"),
        )
