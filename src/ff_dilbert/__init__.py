"""ff-dilbert core library.

This package fetches daily comic pages from the upstream site, parses them
into comic records, and drives per-instance navigation sessions for a
display client (first/previous/next/random/latest, timed auto-advance,
suspend/resume, persisted position).
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
