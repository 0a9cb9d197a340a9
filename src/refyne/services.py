"""Resource services exposed on every client (``client.jobs``, ``client.llm``, ...).

Each service is a thin wrapper that builds a path and body and hands them
to the owning client's ``request`` method with the model to decode into.
Services therefore work unchanged for both clients: with
:class:`~refyne.client.Client` they return the decoded model, with
:class:`~refyne.client.AsyncClient` they return an awaitable of it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional
from urllib.parse import quote, urlencode

from refyne.models import (
    APIKeyCreated,
    APIKeyList,
    CreateSchemaRequest,
    CreateSiteRequest,
    Job,
    JobList,
    JobResults,
    LLMChain,
    LLMChainEntry,
    LLMKey,
    LLMKeyList,
    ModelList,
    ProvidersResponse,
    Schema,
    SchemaList,
    Site,
    SiteList,
    UpsertLLMKeyRequest,
)

if TYPE_CHECKING:
    from refyne.client.base import BaseClient


def _segment(value: str) -> str:
    return quote(value, safe="")


def _with_query(path: str, params: dict[str, Any]) -> str:
    query = {k: v for k, v in params.items() if v is not None}
    return f"{path}?{urlencode(query)}" if query else path


class _Service:
    def __init__(self, client: BaseClient) -> None:
        self._client = client


class JobsService(_Service):
    """Crawl and extraction jobs (``/api/v1/jobs``)."""

    def list(self, limit: Optional[int] = None, offset: Optional[int] = None) -> Any:
        path = _with_query(
            "/api/v1/jobs",
            {"limit": limit or None, "offset": offset or None},
        )
        return self._client.request("GET", path, result_type=JobList)

    def get(self, job_id: str) -> Any:
        return self._client.request(
            "GET", f"/api/v1/jobs/{_segment(job_id)}", result_type=Job
        )

    def results(self, job_id: str, merge: bool = False) -> Any:
        """Fetch extracted results; ``merge=True`` asks for one merged object."""
        path = f"/api/v1/jobs/{_segment(job_id)}/results"
        if merge:
            path += "?merge=true"
        return self._client.request("GET", path, result_type=JobResults)


class SchemasService(_Service):
    """Saved extraction schemas (``/api/v1/schemas``)."""

    def list(self) -> Any:
        return self._client.request("GET", "/api/v1/schemas", result_type=SchemaList)

    def get(self, schema_id: str) -> Any:
        return self._client.request(
            "GET", f"/api/v1/schemas/{_segment(schema_id)}", result_type=Schema
        )

    def create(self, schema: CreateSchemaRequest) -> Any:
        return self._client.request("POST", "/api/v1/schemas", schema, result_type=Schema)

    def update(self, schema_id: str, schema: CreateSchemaRequest) -> Any:
        return self._client.request(
            "PUT", f"/api/v1/schemas/{_segment(schema_id)}", schema, result_type=Schema
        )

    def delete(self, schema_id: str) -> Any:
        return self._client.request("DELETE", f"/api/v1/schemas/{_segment(schema_id)}")


class SitesService(_Service):
    """Saved sites with default crawl options (``/api/v1/sites``)."""

    def list(self) -> Any:
        return self._client.request("GET", "/api/v1/sites", result_type=SiteList)

    def get(self, site_id: str) -> Any:
        return self._client.request(
            "GET", f"/api/v1/sites/{_segment(site_id)}", result_type=Site
        )

    def create(self, site: CreateSiteRequest) -> Any:
        return self._client.request("POST", "/api/v1/sites", site, result_type=Site)

    def update(self, site_id: str, site: CreateSiteRequest) -> Any:
        return self._client.request(
            "PUT", f"/api/v1/sites/{_segment(site_id)}", site, result_type=Site
        )

    def delete(self, site_id: str) -> Any:
        return self._client.request("DELETE", f"/api/v1/sites/{_segment(site_id)}")


class KeysService(_Service):
    """Refyne API keys (``/api/v1/keys``)."""

    def list(self) -> Any:
        return self._client.request("GET", "/api/v1/keys", result_type=APIKeyList)

    def create(self, name: str) -> Any:
        """Create a key. The secret is only present in this response."""
        return self._client.request(
            "POST", "/api/v1/keys", {"name": name}, result_type=APIKeyCreated
        )

    def revoke(self, key_id: str) -> Any:
        return self._client.request("DELETE", f"/api/v1/keys/{_segment(key_id)}")


class LLMService(_Service):
    """LLM provider keys and the fallback chain (``/api/v1/llm``)."""

    def list_providers(self) -> Any:
        return self._client.request(
            "GET", "/api/v1/llm/providers", result_type=ProvidersResponse
        )

    def list_models(self, provider: str) -> Any:
        return self._client.request(
            "GET", f"/api/v1/llm/models/{_segment(provider)}", result_type=ModelList
        )

    def list_keys(self) -> Any:
        return self._client.request("GET", "/api/v1/llm/keys", result_type=LLMKeyList)

    def upsert_key(self, key: UpsertLLMKeyRequest) -> Any:
        return self._client.request("PUT", "/api/v1/llm/keys", key, result_type=LLMKey)

    def delete_key(self, key_id: str) -> Any:
        return self._client.request("DELETE", f"/api/v1/llm/keys/{_segment(key_id)}")

    def get_chain(self) -> Any:
        return self._client.request("GET", "/api/v1/llm/chain", result_type=LLMChain)

    def set_chain(self, entries: list[LLMChainEntry]) -> Any:
        body = {"chain": [entry.to_wire() for entry in entries]}
        return self._client.request("PUT", "/api/v1/llm/chain", body)
