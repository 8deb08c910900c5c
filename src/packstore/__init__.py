"""
packstore - key-indexed entry storage on top of a document store

This package contains:
- index: Index Store, entry projections and the Metadata Synchronizer
- query: free-text query parser and entry matcher
- services: DataStorage repository facade and the remote proxy relay
- storage: persistence engine (SQLAlchemy) with lifecycle observers
- events: observer interface and broadcast channels (in-memory, NATS)
- access_control: actors, roles and responder election
- workers: privileged proxy responder process
- platform: configuration and logging
"""

__version__ = "0.1.0"
