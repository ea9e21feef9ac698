"""
Construction planning domain: step catalog, business-day arithmetic,
schedule generation, cascading re-dating, alerts and budget mapping.

Nothing in this package performs I/O; the API layer loads and persists
records and passes them through these functions.
"""
