"""Infrastructure adapters: configuration, persistence and messaging."""
