"""Service layer: discovery, matching, quotas, confirmation and sync runs."""
