"""Backing services: credential store, caches, sessions and mail."""
