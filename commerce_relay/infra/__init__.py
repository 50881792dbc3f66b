"""Infrastructure: persistence, outbox, audit, logging and metrics."""
