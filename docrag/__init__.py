"""docrag: resilient document ingestion and retrieval-augmented answering.

Raw text goes in, gets split into overlapping chunks, embedded through a
rate-limited and fallible provider, and stored next to its vector.  A
question comes back out as a grounded answer built from the closest chunks.

Package map:
    - config/      pydantic-settings Settings + YAML loader
    - interfaces/  abstract contracts for every external collaborator
    - providers/   concrete adapters (OpenAI, ChromaDB, SQLite, in-memory)
    - services/    chunking, embedding gateway, circuit breaker,
                   ingestion orchestration, question answering
    - api/         FastAPI routes, schemas, middleware
    - cli/         argparse command-line entry points
"""

__version__ = "0.1.0"
