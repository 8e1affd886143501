"""Application-level exception types.

Convention:
- ``IndexWriteError``: a write transaction against the index failed and was
  rolled back.  The index is left exactly as it was before the batch.  The
  sync engine logs it and waits for the next trigger; the JSON layer maps it
  to 503.
- ``ValueError``: caller supplied an invalid argument (negative limit,
  malformed date, unknown scan mode).  Safe to forward to clients as 422.
"""

from __future__ import annotations


class IndexWriteError(Exception):
    """Raised when an index write batch fails and has been rolled back."""
