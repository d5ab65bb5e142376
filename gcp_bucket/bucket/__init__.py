"""Bucket facade: readiness check, upsert, delete, download, image helpers."""

from .facade import GCPBucket

__all__ = ["GCPBucket"]
