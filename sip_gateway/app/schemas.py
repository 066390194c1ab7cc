"""Pydantic models for webhook events and call-accept payloads."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

CALL_INCOMING_EVENT = "realtime.call.incoming"
ACCEPT_AUDIO_FORMAT = "pcm_mulaw"
ACCEPT_SAMPLE_RATE = 8000


class SipHeader(BaseModel):
    name: str
    value: str


class CallIncomingData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    call_id: Optional[str] = None
    sip_headers: list[SipHeader] = Field(default_factory=list)

    @field_validator("call_id")
    @classmethod
    def blank_call_id_is_missing(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    def sip_header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for header in self.sip_headers:
            if header.name.lower() == lowered:
                return header.value
        return None


class WebhookEvent(BaseModel):
    """Decoded webhook notification envelope."""

    model_config = ConfigDict(extra="ignore")

    type: str
    id: Optional[str] = None
    data: Optional[dict[str, Any]] = None

    @property
    def is_call_incoming(self) -> bool:
        return self.type == CALL_INCOMING_EVENT

    def call_incoming_data(self) -> CallIncomingData:
        return CallIncomingData.model_validate(self.data or {})


class AcceptanceAudio(BaseModel):
    model_config = ConfigDict(frozen=True)

    voice: str
    format: Literal["pcm_mulaw"] = ACCEPT_AUDIO_FORMAT
    sample_rate: Literal[8000] = ACCEPT_SAMPLE_RATE


class AcceptanceResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    modalities: tuple[Literal["audio"], ...] = ("audio",)
    instructions: str
    audio: AcceptanceAudio


class AcceptancePayload(BaseModel):
    """Body of the call-accept request; immutable once built for a call."""

    model_config = ConfigDict(frozen=True)

    model: str
    response: AcceptanceResponse

    @classmethod
    def build(cls, *, model: str, instructions: str, voice: str) -> "AcceptancePayload":
        return cls(
            model=model,
            response=AcceptanceResponse(
                instructions=instructions,
                audio=AcceptanceAudio(voice=voice),
            ),
        )

    @property
    def instructions(self) -> str:
        return self.response.instructions

    @property
    def voice(self) -> str:
        return self.response.audio.voice

    def to_request_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
