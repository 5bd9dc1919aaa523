"""
Solar farm monitoring service.

Ingests per-panel sensor readings, scores panel health, stores state in a
durable database with automatic in-memory failover, and pushes real-time
updates to dashboard clients over WebSocket.
"""

__version__ = "0.1.0"
