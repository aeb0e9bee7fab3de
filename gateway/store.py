import asyncio
import random
import time
import uuid
from typing import Callable, Dict, List, Mapping, Optional, Protocol

from .errors import NotFound, Protected, Transient
from .log import get_logger
from .models import CONFIG_MODELS, ConfigKind, ConfigRecord, DispatchLog, IngestRequest

log = get_logger(__name__)

Clock = Callable[[], int]

# fields the store owns; callers cannot set them through create/update
_SERVER_FIELDS = ("id", "kind", "created_at", "updated_at", "protected")


def epoch_ms() -> int:
    return int(time.time() * 1000)


class ConfigStore(Protocol):
    async def list(self, kind: ConfigKind) -> List[ConfigRecord]:
        ...

    async def get(self, kind: ConfigKind, config_id: str) -> ConfigRecord:
        ...

    async def create(self, kind: ConfigKind, fields: Mapping) -> ConfigRecord:
        ...

    async def update(self, kind: ConfigKind, config_id: str, fields: Mapping) -> ConfigRecord:
        ...

    async def delete(self, kind: ConfigKind, config_id: str) -> ConfigRecord:
        ...


class InMemoryConfigStore:
    """Mock configuration backend with simulated latency and outages.

    Records go in and come out as deep copies, mimicking a round trip over
    the wire: nothing a caller does to a returned record touches the store.
    """

    def __init__(
        self,
        clock: Clock = epoch_ms,
        rng: Optional[random.Random] = None,
        latency_min_ms: int = 0,
        latency_max_ms: int = 0,
        failure_rate: float = 0.0,
    ):
        self.clock = clock
        self.rng = rng or random.Random()
        self.latency_min_ms = latency_min_ms
        self.latency_max_ms = max(latency_min_ms, latency_max_ms)
        self.failure_rate = failure_rate
        self._records: Dict[ConfigKind, List[ConfigRecord]] = {
            kind: [] for kind in ConfigKind
        }

    async def _round_trip(self, operation: str, kind: ConfigKind) -> None:
        if self.latency_max_ms > 0:
            delay = self.rng.uniform(self.latency_min_ms, self.latency_max_ms)
            await asyncio.sleep(delay / 1000)
        if self.failure_rate > 0 and self.rng.random() < self.failure_rate:
            log.warning(
                "Simulated outage during %s on %s", operation, kind.value,
                extra={"operation": operation, "kind": kind.value},
            )
            raise Transient("Failed to connect to the configuration service.")

    def _new_id(self) -> str:
        return str(uuid.UUID(int=self.rng.getrandbits(128), version=4))

    def _index_of(self, kind: ConfigKind, config_id: str) -> int:
        for index, record in enumerate(self._records[kind]):
            if record.id == config_id:
                return index
        raise NotFound(f"{kind.value} config", config_id)

    def seed(self, kind: ConfigKind, fields: Mapping, protected: bool = False) -> ConfigRecord:
        """Insert a record directly, bypassing latency and failure injection."""
        now = self.clock()
        values = {key: value for key, value in fields.items() if key not in _SERVER_FIELDS}
        values.update(
            id=self._new_id(),
            created_at=fields.get("created_at", now),
            updated_at=fields.get("updated_at", fields.get("created_at", now)),
            protected=protected,
        )
        record = CONFIG_MODELS[kind].model_validate(values)
        self._records[kind].append(record)
        return record.model_copy(deep=True)

    async def list(self, kind: ConfigKind) -> List[ConfigRecord]:
        await self._round_trip("list", kind)
        return [record.model_copy(deep=True) for record in self._records[kind]]

    async def get(self, kind: ConfigKind, config_id: str) -> ConfigRecord:
        await self._round_trip("get", kind)
        return self._records[kind][self._index_of(kind, config_id)].model_copy(deep=True)

    async def create(self, kind: ConfigKind, fields: Mapping) -> ConfigRecord:
        await self._round_trip("create", kind)
        now = self.clock()
        values = {key: value for key, value in fields.items() if key not in _SERVER_FIELDS}
        values.update(id=self._new_id(), created_at=now, updated_at=now, protected=False)
        record = CONFIG_MODELS[kind].model_validate(values)
        self._records[kind].append(record)
        log.info("Created %s %s", kind.value, record.id, extra={"kind": kind.value})
        return record.model_copy(deep=True)

    async def update(self, kind: ConfigKind, config_id: str, fields: Mapping) -> ConfigRecord:
        """Merge ``fields`` over the stored record and refresh ``updated_at``."""
        await self._round_trip("update", kind)
        index = self._index_of(kind, config_id)
        current = self._records[kind][index]

        values = current.model_dump()
        values.update(
            {key: value for key, value in fields.items() if key not in _SERVER_FIELDS}
        )
        values["updated_at"] = max(self.clock(), current.updated_at)
        # validate before replacing so a bad payload leaves the record untouched
        record = CONFIG_MODELS[kind].model_validate(values)
        self._records[kind][index] = record
        log.info("Updated %s %s", kind.value, config_id, extra={"kind": kind.value})
        return record.model_copy(deep=True)

    async def delete(self, kind: ConfigKind, config_id: str) -> ConfigRecord:
        await self._round_trip("delete", kind)
        index = self._index_of(kind, config_id)
        if self._records[kind][index].protected:
            raise Protected(config_id)
        record = self._records[kind].pop(index)
        log.info("Deleted %s %s", kind.value, config_id, extra={"kind": kind.value})
        return record


class EventLog:
    """Append-only record of ingest requests and their dispatch outcomes."""

    def __init__(self):
        self._requests: List[IngestRequest] = []
        self._requests_by_id: Dict[str, IngestRequest] = {}
        self._dispatches: List[DispatchLog] = []
        self._dispatch_by_request: Dict[str, DispatchLog] = {}

    def append_request(self, request: IngestRequest) -> None:
        if request.id in self._requests_by_id:
            raise ValueError(f"Ingest request '{request.id}' already recorded")
        self._requests.append(request)
        self._requests_by_id[request.id] = request

    def append_dispatch(self, dispatch: DispatchLog) -> None:
        if dispatch.ingest_request_id in self._dispatch_by_request:
            raise ValueError(
                f"Ingest request '{dispatch.ingest_request_id}' already dispatched"
            )
        self._dispatches.append(dispatch)
        self._dispatch_by_request[dispatch.ingest_request_id] = dispatch

    def ingest_requests(self) -> List[IngestRequest]:
        return list(self._requests)

    def dispatch_logs(self) -> List[DispatchLog]:
        return list(self._dispatches)

    def get_request(self, request_id: str) -> IngestRequest:
        try:
            return self._requests_by_id[request_id]
        except KeyError:
            raise NotFound("Ingest request", request_id) from None

    def dispatch_for(self, request_id: str) -> Optional[DispatchLog]:
        return self._dispatch_by_request.get(request_id)
