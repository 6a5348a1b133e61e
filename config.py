from __future__ import annotations

import os

from utils import env_flag, safe_float

# Equalizer parameter bounds
MAX_GAIN = 30.0
MIN_GAIN = -30.0

MAX_FREQUENCY = 20000.0  # the host accepts up to 22050
MIN_FREQUENCY = 10.0
MAX_QUALITY = 999.999
MIN_QUALITY = 0.001

MAX_NUM_FILTERS = 20
MIN_NUM_FILTERS = 1

DEFAULT_FREQUENCIES = (31.0, 62.0, 125.0, 250.0, 500.0, 1000.0, 2000.0, 4000.0, 8000.0, 16000.0)
DEFAULT_QUALITY = 1.0
DEFAULT_NEW_BAND_FREQUENCY = 1000.0

# Wire encoding
VALUE_SCALE = 1000
OVERFLOW_OFFSET = 2 ** 32
NOT_READY_SENTINEL = 2 ** 32 - 1
SUCCESS_RESULT = 1

# IPC
COMMAND_TIMEOUT_SEC = safe_float(os.environ.get("EQLINK_COMMAND_TIMEOUT", "10"), 10.0)
DEBUG_IPC = env_flag("EQLINK_DEBUG_IPC")

# Slider writes
THROTTLE_INTERVAL_MS = safe_float(os.environ.get("EQLINK_THROTTLE_MS", "100"), 100.0)

# Frequency response
RESPONSE_POINTS_PER_DECADE = 96
RESPONSE_SAMPLE_RATE = 48000
RESPONSE_RANGE_BANDWIDTHS = 3.0
RESPONSE_MIN_HALF_OCTAVES = 1.0
RESPONSE_FLOOR_DB = -120.0
RESPONSE_CACHE_SIZE = 256
