"""Infrastructure layer for drive app.

This package contains integrations with external systems:
- Storage tiers (local disk, S3-compatible cloud, public disk)
- MIME type detection
- Share notification mail

Keep infrastructure concerns separate from business logic.
"""
