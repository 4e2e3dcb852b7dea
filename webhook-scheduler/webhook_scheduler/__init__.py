"""Schedule, deliver and retry outbound webhooks (with a trash for soft-deleted jobs)."""

__version__ = "1.0.0"
