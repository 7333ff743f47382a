"""Sync infrastructure for healthsync.

Modules:
    state        - Sync state machine values, results and last-sync persistence
    orchestrator - End-to-end sync: fetch, aggregate, score, encrypt, upload, attest
    scheduler    - Background sync gate (24h interval, 7-day lookback)
"""
