"""Core primitives: series store, retention, window queries, persistence.

Nothing in here fetches data or renders it; callers feed samples through
`FlowMonitor.ingest` and read metrics back through `FlowMonitor.query`.
"""
