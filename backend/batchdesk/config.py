"""
Configuration settings for the batch desk backend.

Every value can be overridden through an environment variable of the
same name.
"""
import os

# Points every student starts from, and returns to on reset
BASELINE_POINTS = int(os.getenv("BASELINE_POINTS", "100"))

# On-time attendance window, local clock time, half-open [start, end)
ATTENDANCE_WINDOW_START = os.getenv("ATTENDANCE_WINDOW_START", "10:00")
ATTENDANCE_WINDOW_END = os.getenv("ATTENDANCE_WINDOW_END", "10:10")

# Name matching
MATCH_ACCEPT_THRESHOLD = float(os.getenv("MATCH_ACCEPT_THRESHOLD", "0.6"))
AUTO_CONFIRM_CONFIDENCE = float(os.getenv("AUTO_CONFIRM_CONFIDENCE", "0.9"))

# Substrings that mark a meeting participant as a bot or system artifact
NON_HUMAN_MARKERS = tuple(
    m.strip().lower()
    for m in os.getenv("NON_HUMAN_MARKERS", "ai,bot,notetaker,system").split(",")
    if m.strip()
)
