"""Merchant webhook body — the event facts as a JSON document."""

import json
from datetime import UTC, datetime


class MerchantWebhookTemplate:
    @staticmethod
    def render(event_type: str, context: dict) -> dict:
        document = {"event": event_type, **context, "timestamp": datetime.now(UTC).isoformat()}
        return {"subject": None, "body": json.dumps(document, default=str)}
