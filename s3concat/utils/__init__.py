"""Shared helpers for s3concat."""
