import re
from typing import Iterable, List, Optional

from .errors import PatternError
from .log import get_logger
from .models import DispatchRule, IngestRequest

log = get_logger(__name__)


def match_rule(
    request: IngestRequest,
    rules: Iterable[DispatchRule],
    diagnostics: Optional[List[PatternError]] = None,
) -> Optional[DispatchRule]:
    """Return the first active rule whose pattern matches the request URL.

    Rules are scanned in collection order and the first hit wins. A rule with
    an invalid pattern is skipped; the problem is logged and appended to
    ``diagnostics`` when a list is supplied.
    """
    for rule in rules:
        if not rule.is_active:
            continue
        try:
            compiled = re.compile(rule.pattern)
        except re.error as exc:
            error = PatternError(rule.id, rule.name, rule.pattern, str(exc))
            log.warning(str(error), extra={"rule_id": rule.id})
            if diagnostics is not None:
                diagnostics.append(error)
            continue
        if compiled.search(request.url):
            return rule
    return None
