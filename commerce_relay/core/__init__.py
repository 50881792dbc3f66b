"""Domain-independent building blocks: database base, events, settings, errors."""
