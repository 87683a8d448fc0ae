"""Health monitoring for homelab dashboard services."""
