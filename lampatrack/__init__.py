"""Push notification dispatch for LampaTrack report status changes."""

__version__ = "0.1.0"
