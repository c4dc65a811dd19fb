"""Service layer: rate providers, notifications and alert management."""
