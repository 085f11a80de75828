"""Command-line interface for docrag.

- ``python -m docrag.cli ingest`` -- ingest a text file as a document
- ``python -m docrag.cli ask`` -- ask a grounded question
- ``python -m docrag.cli list`` / ``delete`` -- manage stored documents
- ``python -m docrag.cli breaker`` -- show circuit breaker settings and state
"""
