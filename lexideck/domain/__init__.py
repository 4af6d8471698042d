"""Domain layer: models, events and services per bounded context."""
