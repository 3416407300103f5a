"""Top-level package for the ConflictRadar RSS ingestion service.

Fetches configured news feeds on a schedule, drops articles already seen,
scores the rest for conflict risk and publishes ingestion, alert and batch
events.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
