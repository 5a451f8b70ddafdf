"""Infrastructure layer: adapters for storage, HTTP APIs and observability."""
