from collections import OrderedDict
from typing import Iterable, List, Optional, Tuple

from .errors import PatternError
from .log import get_logger
from .matching import match_rule
from .models import ConfigKind, DispatchLog, DispatchRule, IngestRequest
from .simulator import DispatchSimulator
from .store import ConfigStore, EventLog

log = get_logger(__name__)


class DispatchPipeline:
    """Matches each recorded ingest request against the dispatch rules and logs the outcome."""

    def __init__(
        self,
        config_store: ConfigStore,
        events: EventLog,
        simulator: DispatchSimulator,
        diagnostics_buffer: int = 100,
    ):
        self.config_store = config_store
        self.events = events
        self.simulator = simulator
        self.diagnostics_buffer = diagnostics_buffer
        # latest error per (rule id, pattern), oldest first
        self._diagnostics: "OrderedDict[Tuple[str, str], PatternError]" = OrderedDict()

    def process(
        self, request: IngestRequest, rules: Iterable[DispatchRule]
    ) -> Optional[DispatchLog]:
        """Record ``request`` and, if a rule matches, its simulated dispatch."""
        errors: List[PatternError] = []
        rule = match_rule(request, rules, errors)
        for error in errors:
            self._remember(error)

        dispatch = self.simulator.simulate(request, rule) if rule else None
        self.events.append_request(request)
        if dispatch is None:
            log.debug("No dispatch rule matched %s", request.url, extra={"request_id": request.id})
            return None

        self.events.append_dispatch(dispatch)
        log.info(
            "Dispatched %s via '%s': %s",
            request.id,
            rule.name,
            dispatch.status,
            extra={"request_id": request.id, "rule_id": rule.id, "status": dispatch.status},
        )
        return dispatch

    async def ingest(self, request: IngestRequest) -> Optional[DispatchLog]:
        # rules are fetched first so a store outage records nothing
        rules = await self.config_store.list(ConfigKind.DISPATCH)
        return self.process(request, rules)

    def backfill(
        self, requests: Iterable[IngestRequest], rules: List[DispatchRule]
    ) -> List[DispatchLog]:
        dispatches = []
        for request in requests:
            dispatch = self.process(request, rules)
            if dispatch is not None:
                dispatches.append(dispatch)
        return dispatches

    def _remember(self, error: PatternError) -> None:
        key = (error.rule_id, error.pattern)
        self._diagnostics.pop(key, None)
        self._diagnostics[key] = error
        while len(self._diagnostics) > self.diagnostics_buffer:
            self._diagnostics.popitem(last=False)

    def diagnostics(self) -> List[PatternError]:
        return list(self._diagnostics.values())
