"""Unit tests for individual components in isolation.

Coverage:
    - ingestion/: Upload queue ordering, concurrency and failures
    - chat/: Session store snapshots, streaming and error handling
    - parsing/: QR payload validation and normalization
    - agent/: Gateway configuration and Agno wiring
"""
