from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field


class ConfigKind(str, Enum):
    DTO = "dto"
    ETL = "etl"
    DISPATCH = "dispatch"
    WEBHOOK = "webhook"

    @property
    def label(self) -> str:
        return _KIND_LABELS[self]


_KIND_LABELS = {
    ConfigKind.DTO: "DTO Mappings",
    ConfigKind.ETL: "ETL Configs",
    ConfigKind.DISPATCH: "Dispatch Rules",
    ConfigKind.WEBHOOK: "Webhook Configs",
}


class IngestRequest(BaseModel):
    """Inbound call captured by the gateway. Never mutated after ingestion."""

    model_config = ConfigDict(frozen=True)

    id: str
    method: str
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    body: str = ""
    query_params: str = ""
    ip: str = ""
    user_agent: str = ""
    timestamp: int


class DispatchLog(BaseModel):
    """Outcome of delivering one ingest request to its matched rule's target."""

    model_config = ConfigDict(frozen=True)

    id: str
    ingest_request_id: str
    rule_id: str
    rule_name: str
    target_url: str
    status: Literal["SUCCESS", "FAILED"]
    status_code: int
    retry_attempts: int
    response_body: str
    timestamp: int
    execution_time: int


class ConfigRecord(BaseModel):
    id: str
    is_active: bool = True
    protected: bool = False
    created_at: int
    updated_at: int


class DtoMapping(ConfigRecord):
    kind: Literal["dto"] = "dto"
    name: str
    source_pattern: str = ""
    target_schema: str = '{\n  "key": "value"\n}'
    transformation_rules: str = '{\n  "key": "value"\n}'


class EtlConfig(ConfigRecord):
    kind: Literal["etl"] = "etl"
    name: str
    source_dto: str = ""
    target_format: str = ""
    extraction_rules: str = '{\n  "key": "value"\n}'
    transformation_rules: str = '{\n  "key": "value"\n}'
    load_rules: str = '{\n  "key": "value"\n}'


class DispatchRule(ConfigRecord):
    kind: Literal["dispatch"] = "dispatch"
    name: str
    pattern: str
    target_url: str
    method: str = "POST"
    headers: str = '{\n  "Content-Type": "application/json"\n}'
    retry_count: int = Field(3, ge=0)
    timeout: int = Field(30000, ge=0)


class WebhookConfig(ConfigRecord):
    kind: Literal["webhook"] = "webhook"
    provider: Literal["hubspot", "twilio"] = "hubspot"
    secret: str = ""
    signature_header: str = ""
    algorithm: str = "SHA-256"


CONFIG_MODELS: Dict[ConfigKind, Type[ConfigRecord]] = {
    ConfigKind.DTO: DtoMapping,
    ConfigKind.ETL: EtlConfig,
    ConfigKind.DISPATCH: DispatchRule,
    ConfigKind.WEBHOOK: WebhookConfig,
}


class DashboardStats(BaseModel):
    totalIngest: int
    totalDispatch: int
    failedDispatch: int
    activeWebhooks: int
    avgExecutionTime: int


class HourlyBucket(BaseModel):
    name: str
    requests: int


class TablePage(BaseModel):
    items: List[Any]
    totalItems: int
    totalPages: int
    page: int
    pageSize: int


class IngestOutcome(BaseModel):
    request: IngestRequest
    dispatch: Optional[DispatchLog] = None
