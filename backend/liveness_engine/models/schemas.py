"""
Request schemas for client-supplied session settings
"""
from typing import Optional

from pydantic import AliasChoices, AliasGenerator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _names(field_name: str, *legacy: str) -> AliasChoices:
    """Accept snake_case, camelCase and any legacy widget names"""
    return AliasChoices(field_name, to_camel(field_name), *legacy)


class SessionConfigRequest(BaseModel):
    """
    Partial LivenessConfig sent by a client (or passed as overrides).

    Every field is optional; fields left out keep the base config value.
    Numeric strings are coerced, anything else that is not a number is
    rejected, as are unknown keys.
    """

    model_config = ConfigDict(
        alias_generator=AliasGenerator(validation_alias=lambda name: _names(name)),
        extra="forbid",
    )

    # Blink
    blink_threshold: Optional[float] = Field(
        None, ge=0.0, le=1.0, validation_alias=_names("blink_threshold", "earThreshold")
    )
    blink_recovery_threshold: Optional[float] = Field(
        None, ge=0.0, le=1.0, validation_alias=_names("blink_recovery_threshold", "earRecoveryThreshold")
    )
    min_blink_ms: Optional[float] = Field(
        None, ge=0.0, validation_alias=_names("min_blink_ms", "minBlinkDuration")
    )
    max_blink_ms: Optional[float] = Field(
        None, gt=0.0, validation_alias=_names("max_blink_ms", "maxBlinkDuration")
    )

    # Head turns
    head_turn_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
    head_center_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)

    # Expressions
    smile_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
    jaw_open_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
    brow_raise_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
    squint_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
    eye_look_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
    purse_lips_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
    frown_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)

    # Winks
    wink_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
    wink_open_eye_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
    wink_hold_ms: Optional[float] = Field(None, ge=0.0)

    # Session
    detection_interval_ms: Optional[float] = Field(
        None, gt=0.0, validation_alias=_names("detection_interval_ms", "detectionInterval")
    )
    timeout_ms: Optional[float] = Field(
        None, gt=0.0, validation_alias=_names("timeout_ms", "timeoutDuration")
    )
    challenge_count: Optional[int] = Field(None, ge=1)
    capture_delay_ms: Optional[float] = Field(None, ge=0.0)
    max_consecutive_detection_errors: Optional[int] = Field(None, ge=1)

    def overrides(self) -> dict:
        """Field values the client actually set, keyed by LivenessConfig field name"""
        return self.model_dump(exclude_none=True)
