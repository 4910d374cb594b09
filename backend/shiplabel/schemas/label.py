"""
ShipLabel Backend - Pydantic Request/Response Schemas
=======================================================

What:  Pydantic models for the label form and the health endpoint.
How:   LabelRequest is built from the submitted form/JSON body via
       from_payload(), which is the pipeline's input validator.
Who:   Used by LabelService (input) and the health route (output).

Wire names vs Python names:
    The dashboard form and JSON clients send camelCase keys
    (senderName, senderAddress, receiverName, receiverAddress).
    They are exposed as pydantic aliases so the model can be
    populated from either spelling.
"""

from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from shiplabel.exceptions import ValidationError

# What: Value substituted for an absent or empty address.
PLACEHOLDER = "N/A"

REQUIRED_FIELDS = ("senderName", "receiverName")
OPTIONAL_FIELDS = ("senderAddress", "receiverAddress")


def _as_text(value: Any) -> Optional[str]:
    """Return the value as text, or None when it is absent or empty."""
    if value is None:
        return None
    text = value if isinstance(value, str) else str(value)
    return text or None


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class LabelRequest(BaseModel):
    """
    What:  Sender and receiver details for one delivery label.
    When:  Exists only for the duration of one /generate-label request.

    Text is accepted verbatim: no length or character-set restrictions.
    Addresses may contain newlines; the composer prints one line per row.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    sender_name: str = Field(alias="senderName", description="Sender name (required)")
    sender_address: str = Field(
        default=PLACEHOLDER, alias="senderAddress", description="Sender address"
    )
    receiver_name: str = Field(alias="receiverName", description="Receiver name (required)")
    receiver_address: str = Field(
        default=PLACEHOLDER, alias="receiverAddress", description="Receiver address"
    )

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "LabelRequest":
        """
        Validate a submitted form and build a LabelRequest.

        Args:
            payload: Form fields or decoded JSON object, keyed by wire name.

        Returns:
            LabelRequest with addresses defaulted to "N/A" when absent.

        Raises:
            ValidationError: senderName or receiverName missing or empty.
        """
        values = {}
        for name in REQUIRED_FIELDS:
            text = _as_text(payload.get(name))
            # Blank names are rejected; blank addresses are kept as typed
            if text is None or not text.strip():
                raise ValidationError(
                    message=f"{name} is required",
                    field=name,
                )
            values[name] = text

        for name in OPTIONAL_FIELDS:
            values[name] = _as_text(payload.get(name)) or PLACEHOLDER

        return cls(**values)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class HealthResponse(BaseModel):
    """
    What:  Health check response for monitoring and container probes.
    Who:   Returned by GET /health.
    """

    status: str = Field(description="Overall service status: healthy or unhealthy")
    version: str = Field(description="Application version")
    scratch_dir: str = Field(description="Scratch directory state: writable or unavailable")
    uptime_seconds: float = Field(description="Seconds since service started")
