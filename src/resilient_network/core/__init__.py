"""Core components of resilient-network."""
