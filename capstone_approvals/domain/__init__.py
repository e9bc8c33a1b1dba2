"""Domain layer: approval workflow rules, payloads and services."""
