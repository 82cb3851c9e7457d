"""mathematical constants computed once here to avoid recomputation"""
import math

# logistic scale shared by every Elo-like model
SCALE = 400.0
ALPHA = math.log(10.0) / SCALE
DISPLAY_CENTER = 1000
LOG_TO_DISPLAY = SCALE / math.log(10.0)

# k-factor decay
K_MIN = 16.0
K_MAX = 32.0
K_DECAY_RATE = 20.0

# openskill defaults and display mapping
OS_MU = 25.0
OS_SIGMA = 25.0 / 3.0
OS_SCALE = 40.0
OS_OFFSET = 1000.0

SECONDS_PER_DAY = 24 * 60 * 60
