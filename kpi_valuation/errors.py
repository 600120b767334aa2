from __future__ import annotations


class KpiValuationError(ValueError):
    """Raised when the engine is called with arguments it cannot interpret.

    Bad *data* never raises; it degrades to zero or to the unknown scope. This
    error is reserved for caller mistakes such as querying an aggregation index
    for a record it was not built from.
    """
