"""
Composer configuration.

Centralized configuration for FFmpeg settings, output parameters, progress
bands and artifact content types.
"""
import os

# FFmpeg binaries
FFMPEG_BINARY = os.getenv("FFMPEG_BINARY", "ffmpeg")
FFPROBE_BINARY = os.getenv("FFPROBE_BINARY", "ffprobe")
FFPROBE_TIMEOUT = 30  # seconds per probe

# Video output settings
OUTPUT_VIDEO_CODEC = "libx264"
OUTPUT_PIXEL_FORMAT = "yuv420p"
FFMPEG_PRESET = os.getenv("FFMPEG_PRESET", "fast")  # Balance speed/quality
FFMPEG_CRF = int(os.getenv("FFMPEG_CRF", "23"))

# Audio output settings
OUTPUT_AUDIO_CODEC = "aac"
OUTPUT_AUDIO_BITRATE = "192k"
AUDIO_SAMPLE_RATE = 44100
AUDIO_CHANNEL_LAYOUT = "stereo"
AUDIO_SAMPLE_FORMAT = "fltp"

# Thumbnail settings
THUMBNAIL_OFFSET_SECONDS = 1.0
THUMBNAIL_WIDTH = 640

# Progress bands (percent of the whole job)
DOWNLOAD_PROGRESS_END = 20
ENCODE_PROGRESS_START = 20
ENCODE_PROGRESS_END = 90
THUMBNAIL_PROGRESS = 90
UPLOAD_PROGRESS_START = 92
UPLOAD_PROGRESS_END = 96

# Content types for published artifacts
VIDEO_CONTENT_TYPE = "video/mp4"
THUMBNAIL_CONTENT_TYPE = "image/jpeg"
