"""Business logic layer for files app.

This package contains the file engine:
- Namespace registry, tag and group catalog
- Identifier allocation (local names, public slugs)
- File lifecycle, ingestion and multi-action updates
- Access policy and the transport-agnostic operation facade

All business logic should be implemented here, separate from
models (data layer) and infrastructure (external systems).
"""
