"""Generation provider implementations.

Each provider module implements one half of the async generation pattern:
  POST create task → GET record info
Polling, normalization and asset download live in app.services.
"""
