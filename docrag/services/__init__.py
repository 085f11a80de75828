"""Business logic: embedding gateway, circuit breaker, ingestion and answering."""
