"""Paginated REST adapters for identity and incident data.

Each adapter serves one page of an entity's objects per call and returns
an opaque cursor for the next page, so syncs can resume at any point.
"""

__version__ = "1.0.0"
