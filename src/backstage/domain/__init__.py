"""Domain layer: entities, ports and exceptions. No I/O in here."""
