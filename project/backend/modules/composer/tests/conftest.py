"""
Pytest fixtures for composer tests.
"""
import pytest

from shared.models.composition import AudioTrack, CompositionRequest, Shot
from modules.composer.job_store import JobStore


def make_shot(index: int, **overrides) -> Shot:
    """Create a shot at timeline position index."""
    data = {
        "id": f"shot-{index}",
        "order": index,
        "video_url": f"https://cdn.example.com/shots/shot{index}.mp4",
        "duration_ms": 5000,
    }
    data.update(overrides)
    return Shot(**data)


def make_track(index: int, **overrides) -> AudioTrack:
    """Create an audio track starting at the scene origin."""
    data = {
        "id": f"track-{index}",
        "source_url": f"https://cdn.example.com/audio/track{index}.mp3",
        "start_time_ms": 0,
        "duration_ms": 3000,
    }
    data.update(overrides)
    return AudioTrack(**data)


def make_request(shots=None, audio_tracks=None, **overrides) -> CompositionRequest:
    """Create a composition request (two default shots unless given)."""
    data = {
        "job_id": "job-123",
        "project_id": "project-1",
        "scene_id": "scene-1",
        "webhook_url": "https://app.example.com/api/scenes/scene-1/compose/webhook",
        "shots": [make_shot(0), make_shot(1)] if shots is None else shots,
        "audio_tracks": audio_tracks or [],
    }
    data.update(overrides)
    return CompositionRequest(**data)


@pytest.fixture
def sample_shot():
    """Factory for shots."""
    return make_shot


@pytest.fixture
def sample_track():
    """Factory for audio tracks."""
    return make_track


@pytest.fixture
def sample_request():
    """Factory for composition requests."""
    return make_request


@pytest.fixture
def job_store():
    """Empty job ledger."""
    return JobStore()
