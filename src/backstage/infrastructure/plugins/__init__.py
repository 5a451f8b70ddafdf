"""Platform adapters and their registry."""
