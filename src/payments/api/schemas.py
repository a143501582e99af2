"""Pydantic response schemas for the Payments API."""

from pydantic import BaseModel


class WebhookResponse(BaseModel):
    received: bool = True
    status: str
    order_id: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"received": True, "status": "created", "order_id": "5b0f3f0e-8f3c-4a55-9a8e-2f5a1d3c9e10"},
            ]
        }
    }
