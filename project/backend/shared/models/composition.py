"""
Scene composition data models.

Defines the inbound CompositionRequest (shots and audio tracks) and the
CompositionResult sent to the completion webhook.
"""

from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

FadeType = Literal["none", "black", "white"]


class CamelModel(BaseModel):
    """Base model using camelCase on the wire and snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class Shot(CamelModel):
    """One source video clip placed on the scene timeline."""

    id: str
    order: int = Field(description="Timeline position; ties keep submission order")
    video_url: str
    duration_ms: int = Field(gt=0, description="Clip duration before trimming")
    trim_start_ms: int = Field(default=0, ge=0)
    trim_end_ms: int = Field(default=0, ge=0)
    audio_muted: bool = False
    fade_in_type: Optional[FadeType] = None
    fade_out_type: Optional[FadeType] = None
    fade_duration_ms: int = Field(default=500, gt=0)

    @property
    def stored_duration_ms(self) -> int:
        """Usable length declared by the caller (duration minus both trims)."""
        return self.duration_ms - self.trim_start_ms - self.trim_end_ms

    @property
    def needs_trim(self) -> bool:
        return self.trim_start_ms > 0 or self.trim_end_ms > 0


class AudioTrack(CamelModel):
    """Independently timed audio layer mixed over the assembled shot audio."""

    id: str
    source_url: str
    start_time_ms: float = Field(ge=0, description="Offset on the scene timeline")
    duration_ms: float = Field(gt=0, description="Extracted length")
    trim_start_ms: float = Field(default=0, ge=0, description="Offset into the source")
    volume: float = Field(default=1.0, ge=0.0, le=1.0)
    muted: bool = False


class CompositionRequest(CamelModel):
    """Scene composition job submitted by the web app."""

    job_id: str
    project_id: str
    scene_id: str
    webhook_url: str
    shots: List[Shot] = Field(default_factory=list)
    audio_tracks: List[AudioTrack] = Field(default_factory=list)
    master_volume: float = Field(default=1.0, ge=0.0)


class CompositionResult(CamelModel):
    """Terminal job outcome posted to the webhook."""

    job_id: str
    status: Literal["completed", "failed"]
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration_ms: Optional[int] = None
    error: Optional[str] = None

    def to_payload(self) -> dict:
        """Serialize to the camelCase webhook body, omitting absent fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


def sorted_shots(request: CompositionRequest) -> List[Shot]:
    """Shots in timeline order (stable, so equal orders keep submission order)."""
    return sorted(request.shots, key=lambda s: s.order)


def active_audio_tracks(request: CompositionRequest) -> List[AudioTrack]:
    """Audio tracks that take part in the mix; muted tracks are never fetched."""
    return [t for t in request.audio_tracks if not t.muted]
