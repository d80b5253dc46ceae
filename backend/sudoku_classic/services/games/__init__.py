"""Game domain services: puzzle session, scoring, timers and puzzle intake.

This package contains pure(ish) domain logic that should be imported by
HTTP routes and socket handlers, keeping transport concerns separated
from core game mechanics.
"""
