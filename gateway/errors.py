from typing import Optional


class GatewayError(Exception):
    """Base class for errors surfaced by the gateway core."""


class NotFound(GatewayError):
    def __init__(self, what: str, record_id: str):
        super().__init__(f"{what} '{record_id}' not found")
        self.record_id = record_id


class Protected(GatewayError):
    def __init__(self, record_id: str):
        super().__init__(
            "This is a protected configuration and cannot be deleted."
        )
        self.record_id = record_id


class Transient(GatewayError):
    """Backend temporarily unavailable. Callers may retry."""


class PatternError(GatewayError):
    """A dispatch rule carries a pattern that is not a valid regular expression."""

    def __init__(
        self, rule_id: str, rule_name: str, pattern: str, reason: Optional[str] = None
    ):
        super().__init__(
            f"Rule '{rule_name}' ({rule_id}) has an invalid pattern {pattern!r}: {reason}"
        )
        self.rule_id = rule_id
        self.rule_name = rule_name
        self.pattern = pattern
        self.reason = reason

    def as_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "pattern": self.pattern,
            "reason": self.reason,
        }
