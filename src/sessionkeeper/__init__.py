"""
SessionKeeper - maintenance for JSON-backed chat session stores.

- codec: store file <-> StoreDocument
- activity / eviction: last-activity derivation and expiry policy
- optimizer: field-level compaction pipeline
- migration: legacy record -> canonical schema
- stats: store-wide statistics
- backup / storage: snapshots and atomic rewrites
- lifecycle: analyze, cleanup, migrate and restore passes
"""

__version__ = "0.3.0"
