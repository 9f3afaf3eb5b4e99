"""Business logic layer for drive app.

This package contains all business logic of the drive core:
- Node tree: insert, lookup, listing, breadcrumbs, search
- Trash lifecycle: trash, restore, purge
- Favourites and sharing grants
- Archive export across storage tiers
- Cloud upload job

All business logic should be implemented here, separate from
models (data layer) and infrastructure (external systems).
"""
