"""Shared pytest configuration."""

from __future__ import annotations

import os

# The timeslot unit has no default; provide one before app modules load.
os.environ.setdefault("SCHEDULING_MINUTES_OF_TIMESLOT", "30")
