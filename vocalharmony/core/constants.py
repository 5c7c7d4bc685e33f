"""Global constants for Vocal Harmony."""

# Pitch names
PITCH_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

# Audio engine defaults
DEFAULT_SR = 48000
DEFAULT_BLOCK_SIZE = 512
DEFAULT_RENDER_BLOCK_SIZE = 4096
CAPTURE_FRAME_SIZE = 4096
ESTIMATED_INPUT_LATENCY = 0.02  # seconds

# Pitch analysis
MIN_WINDOW_SIZE = 1024
ANALYSIS_WINDOW_SIZE = 2048
SILENCE_RMS = 0.008
TRIM_THRESHOLD = 0.2

# Track model
MASTER_TRACK_ID = 0
MIN_PITCH_SHIFT = -12
MAX_PITCH_SHIFT = 12
TRACK_COLORS = ["#f97316", "#84cc16", "#eab308", "#10b981", "#06b6d4", "#ec4899"]
MASTER_COLOR = "#64748b"
RECORD_COLOR = "#ef4444"
MAX_TRACK_NAME = 20

# Project archive
PROJECT_MANIFEST = "project.json"
PROJECT_VERSION = "1.0"
AUDIO_EXTENSIONS = {".wav", ".mp3", ".ogg", ".m4a", ".flac"}
