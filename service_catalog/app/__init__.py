"""
Book Catalog Service package.

This package serves users, books and reviews over HTTP. It provides:

- app.main: API surface for catalog CRUD, search, population and health.
- app.caching: Read-through cache with TTL expiry for the read endpoints.
- app.catalog: Models, repositories (memory, PostgreSQL) and fake data.

Guidelines:
- Read endpoints are cached by request identity for a fixed TTL.
- The cache fails open: store outages mean recomputation, never errors.
- Writes do not invalidate cached reads; staleness is bounded by the TTL.
"""
