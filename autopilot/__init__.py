"""LinkedIn automation: daily posts, DM replies in your voice, Easy Apply."""

__version__ = "0.1.0"
