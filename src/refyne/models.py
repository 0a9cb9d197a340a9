"""Canonical Pydantic models shared across all refyne modules.

The models fall into three groups:

**Configuration** -- :class:`ClientConfig` (per-client settings) and
:class:`Settings` (the CLI's persisted config file).

**Cache** -- :class:`CacheControlDirectives` and :class:`CacheEntry`, the
value types produced by :mod:`refyne.cache`.

**API payloads** -- request and response bodies for the Refyne endpoints.
The wire format uses camelCase keys; every payload model declares a camel
alias generator and accepts both spellings on input. Response models use
``extra="allow"`` so fields added server-side are preserved in
``model_extra`` rather than rejected.
"""

from __future__ import annotations

import enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from refyne import DEFAULT_BASE_URL, MAX_KNOWN_API_VERSION, MIN_API_VERSION


# --- Configuration ---


class ClientConfig(BaseModel):
    """Settings for a single :class:`~refyne.client.Client` instance.

    Example::

        ClientConfig(api_key="rf_live_...", timeout=10, max_retries=5)
    """

    api_key: str = Field(default="", description="Bearer token sent with every request")
    base_url: str = Field(default=DEFAULT_BASE_URL, description="API root URL")
    timeout: float = Field(default=30.0, gt=0, description="Per-attempt timeout in seconds")
    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    cache_enabled: bool = Field(default=True, description="Cache GET responses")
    cache_max_entries: int = Field(default=100, ge=1, description="In-memory cache capacity")
    user_agent_suffix: Optional[str] = Field(
        default=None, description="Appended to the User-Agent header"
    )
    min_api_version: str = Field(default=MIN_API_VERSION)
    max_known_api_version: str = Field(default=MAX_KNOWN_API_VERSION)

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class Settings(BaseModel):
    """CLI configuration persisted at ``~/.config/refyne/config.json``.

    ``api_key_source`` is a credential source descriptor resolved by
    :func:`~refyne.config.resolve_credential` (``env:VAR``,
    ``file:/path``, or a literal key).
    """

    api_key_source: str = Field(default="env:REFYNE_API_KEY")
    base_url: str = Field(default=DEFAULT_BASE_URL)
    timeout: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=0)
    cache_enabled: bool = True
    cache_max_entries: int = Field(default=100, ge=1)
    disk_cache: bool = Field(
        default=False, description="Persist cached responses under the cache directory"
    )
    output_format: Literal["auto", "json", "plain", "rich"] = Field(
        default="auto", description="Result format when neither --json nor --plain is given"
    )


# --- Cache ---


class CacheControlDirectives(BaseModel):
    """Parsed ``Cache-Control`` header. Immutable value type."""

    model_config = ConfigDict(frozen=True)

    no_store: bool = False
    no_cache: bool = False
    private: bool = False
    max_age: Optional[int] = Field(default=None, ge=0)
    stale_while_revalidate: Optional[int] = Field(default=None, ge=0)


class CacheEntry(BaseModel):
    """A cached response payload with its absolute expiry (epoch seconds)."""

    value: Any = None
    expires_at: int
    directives: CacheControlDirectives = Field(default_factory=CacheControlDirectives)


# --- API payloads ---


class _WireModel(BaseModel):
    """Base for request bodies: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Serialise for a request body, dropping unset optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class _ResponseModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )


class JobStatus(str, enum.Enum):
    """Job states the API documents. Job models keep ``status`` as a plain
    string so newer server states still validate."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class LLMConfig(_WireModel):
    """Bring-your-own LLM settings for a single extraction or crawl."""

    provider: Optional[str] = None
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model: Optional[str] = None


class ExtractRequest(_WireModel):
    url: str
    schema_: dict[str, Any] = Field(alias="schema")
    fetch_mode: Optional[str] = Field(
        default=None, description="auto, static, or dynamic"
    )
    llm_config: Optional[LLMConfig] = None


class TokenUsage(_ResponseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0
    llm_cost_usd: float = 0.0
    is_byok: bool = False


class ExtractionMetadata(_ResponseModel):
    fetch_duration_ms: int = 0
    extract_duration_ms: int = 0
    model: str = ""
    provider: str = ""


class ExtractResponse(_ResponseModel):
    data: dict[str, Any] = Field(default_factory=dict)
    url: str = ""
    fetched_at: str = ""
    usage: Optional[TokenUsage] = None
    metadata: Optional[ExtractionMetadata] = None


class CrawlOptions(_WireModel):
    follow_selector: Optional[str] = None
    follow_pattern: Optional[str] = None
    max_depth: Optional[int] = None
    next_selector: Optional[str] = None
    max_pages: Optional[int] = None
    max_urls: Optional[int] = None
    delay: Optional[str] = Field(default=None, description='e.g. "500ms"')
    concurrency: Optional[int] = None
    same_domain_only: Optional[bool] = None
    extract_from_seeds: Optional[bool] = None


class CrawlRequest(_WireModel):
    url: str
    schema_: dict[str, Any] = Field(alias="schema")
    options: Optional[CrawlOptions] = None
    webhook_url: Optional[str] = None
    llm_config: Optional[LLMConfig] = None


class CrawlJobCreated(_ResponseModel):
    job_id: str
    status: str = JobStatus.PENDING.value
    status_url: str = ""


class Job(_ResponseModel):
    id: str
    type: str = ""
    status: str = JobStatus.PENDING.value
    url: str = ""
    page_count: int = 0
    token_usage_input: int = 0
    token_usage_output: int = 0
    cost_credits: float = 0.0
    error_message: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    created_at: str = ""


class JobList(_ResponseModel):
    jobs: list[Job] = Field(default_factory=list)


class JobResults(_ResponseModel):
    job_id: str = ""
    status: str = JobStatus.PENDING.value
    page_count: int = 0
    results: Optional[list[dict[str, Any]]] = None
    merged: Optional[dict[str, Any]] = None


class AnalyzeRequest(_WireModel):
    url: str
    depth: Optional[int] = None


class AnalyzeResponse(_ResponseModel):
    url: str = ""
    suggested_schema: dict[str, Any] = Field(default_factory=dict)
    follow_patterns: list[str] = Field(default_factory=list)


class Schema(_ResponseModel):
    id: str
    name: str = ""
    description: Optional[str] = None
    schema_yaml: str = ""
    category: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


class SchemaList(_ResponseModel):
    schemas: list[Schema] = Field(default_factory=list)


class CreateSchemaRequest(_WireModel):
    name: str
    schema_yaml: str
    description: Optional[str] = None
    category: Optional[str] = None


class Site(_ResponseModel):
    id: str
    name: str = ""
    url: str = ""
    schema_id: Optional[str] = None
    crawl_options: Optional[CrawlOptions] = None
    created_at: str = ""


class SiteList(_ResponseModel):
    sites: list[Site] = Field(default_factory=list)


class CreateSiteRequest(_WireModel):
    name: str
    url: str
    schema_id: Optional[str] = None
    crawl_options: Optional[CrawlOptions] = None


class APIKey(_ResponseModel):
    id: str
    name: str = ""
    prefix: str = ""
    created_at: str = ""
    last_used_at: Optional[str] = None


class APIKeyList(_ResponseModel):
    keys: list[APIKey] = Field(default_factory=list)


class APIKeyCreated(_ResponseModel):
    id: str
    name: str = ""
    key: str = Field(default="", description="Full secret, only returned once")


class UsageResponse(_ResponseModel):
    tier: str = ""
    credits_used: float = 0.0
    credits_limit: float = 0.0
    credits_remaining: float = 0.0
    period_start: str = ""
    period_end: str = ""


class LLMKey(_ResponseModel):
    id: str
    provider: str = ""
    default_model: str = ""
    base_url: Optional[str] = None
    is_enabled: bool = True
    created_at: str = ""


class LLMKeyList(_ResponseModel):
    keys: list[LLMKey] = Field(default_factory=list)


class UpsertLLMKeyRequest(_WireModel):
    provider: str
    api_key: str
    default_model: str
    base_url: Optional[str] = None
    is_enabled: Optional[bool] = None


class LLMChainEntry(_WireModel):
    id: Optional[str] = None
    position: Optional[int] = None
    provider: str
    model: str
    is_enabled: Optional[bool] = None


class LLMChain(_ResponseModel):
    chain: list[LLMChainEntry] = Field(default_factory=list)


class Model(_ResponseModel):
    id: str
    name: str = ""


class ModelList(_ResponseModel):
    models: list[Model] = Field(default_factory=list)


class ProvidersResponse(_ResponseModel):
    providers: list[str] = Field(default_factory=list)
