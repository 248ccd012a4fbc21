"""Utilities: proxy pool, secret masking, body serialization."""
