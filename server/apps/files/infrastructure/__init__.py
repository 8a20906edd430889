"""Infrastructure layer for files app.

This package contains integrations with external systems:
- Content store backend (S3/MinIO)
- Bounded download of remote URLs
- Metadata helpers (MIME type, checksum, URL checks)

Keep infrastructure concerns separate from business logic.
"""
