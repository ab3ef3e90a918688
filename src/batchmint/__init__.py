"""Batch commit-reveal minting service."""
