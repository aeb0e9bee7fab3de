import json
import random
import uuid
from typing import Dict, List, Optional

from .models import ConfigKind, ConfigRecord, IngestRequest
from .store import Clock, InMemoryConfigStore, epoch_ms

HOUR_MS = 60 * 60 * 1000

_METHODS = ["GET", "POST", "PUT", "DELETE"]
_RESOURCES = ["users", "products", "orders", "webhook/hubspot"]
_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def _pretty(value: dict) -> str:
    return json.dumps(value, indent=2)


class MockIngestSource:
    """Generates captured inbound calls standing in for real gateway traffic."""

    def __init__(self, rng: Optional[random.Random] = None, clock: Clock = epoch_ms):
        self.rng = rng or random.Random()
        self.clock = clock

    def generate(self, count: int, window_hours: int = 72) -> List[IngestRequest]:
        now = self.clock()
        window_ms = window_hours * HOUR_MS
        return [self._request(i, now - self.rng.randint(0, window_ms)) for i in range(count)]

    def _request(self, i: int, timestamp: int) -> IngestRequest:
        return IngestRequest(
            id=str(uuid.UUID(int=self.rng.getrandbits(128), version=4)),
            method=self.rng.choice(_METHODS),
            url=f"https://api.example.com/v1/{_RESOURCES[i % len(_RESOURCES)]}/{i}",
            headers={"Content-Type": "application/json", "User-Agent": "MockClient/1.0"},
            body=json.dumps({"message": f"This is mock body {i}"}),
            query_params=f"?limit=10&offset={i * 10}",
            ip=f"192.168.1.{i % 256}",
            user_agent=_USER_AGENT,
            timestamp=timestamp,
        )


def default_configs(now: int) -> Dict[ConfigKind, List[dict]]:
    """Sample configuration per kind. The first entry of each kind is seeded as protected."""
    return {
        ConfigKind.DTO: [
            {
                "name": "HubSpot Contact Mapping",
                "source_pattern": ".*webhook/hubspot.*",
                "target_schema": '{"contact_id": "string", "email": "string"}',
                "transformation_rules": _pretty(
                    {"contact_id": "properties.hs_object_id", "email": "properties.email"}
                ),
            }
        ],
        ConfigKind.ETL: [
            {
                "name": "Contact Processing Pipeline",
                "source_dto": "hubspot_contact",
                "target_format": "crm_contact",
                "extraction_rules": _pretty({"contact_info": "contact_id", "email_address": "email"}),
                "transformation_rules": _pretty(
                    {
                        "id": "contact_info",
                        "email": {
                            "type": "transform",
                            "source": "email_address",
                            "transformation": "lowercase",
                        },
                    }
                ),
                "load_rules": _pretty({"destination": "crm_api", "format": "json"}),
            }
        ],
        ConfigKind.DISPATCH: [
            {
                "name": "Forward to CRM",
                "pattern": ".*webhook.*",
                "target_url": "https://downstream.crm.com/api/contacts",
                "method": "POST",
                "headers": json.dumps({"Authorization": "Bearer YOUR_API_KEY"}),
                "retry_count": 3,
                "timeout": 30000,
                "is_active": True,
            },
            {
                "name": "Log Analytics Events",
                "pattern": ".*analytics.*",
                "target_url": "https://downstream.analytics.com/events",
                "method": "POST",
                "headers": json.dumps({"X-API-KEY": "ANALYTICS_KEY"}),
                "retry_count": 1,
                "timeout": 15000,
                "is_active": False,
                "created_at": now - 24 * HOUR_MS,
            },
        ],
        ConfigKind.WEBHOOK: [
            {
                "provider": "hubspot",
                "secret": "********",
                "signature_header": "X-HubSpot-Signature-v3",
                "algorithm": "SHA-256",
            }
        ],
    }


def seed_store(store: InMemoryConfigStore, now: int) -> Dict[ConfigKind, List[ConfigRecord]]:
    seeded: Dict[ConfigKind, List[ConfigRecord]] = {}
    for kind, entries in default_configs(now).items():
        seeded[kind] = [
            store.seed(kind, fields, protected=position == 0)
            for position, fields in enumerate(entries)
        ]
    return seeded
