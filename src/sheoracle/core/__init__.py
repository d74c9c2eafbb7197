"""Parameter model, registry, verifiers and runner."""
