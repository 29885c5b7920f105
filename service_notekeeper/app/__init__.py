"""
Notekeeper service package.

CRUD backend for users and notes. It provides:

- app.main: API surface for users, notes and health.
- app.coordinators: Cache-first read and direct-to-store write coordination.
- app.cache: Redis cache store and cache key derivation.
- app.persistence: PostgreSQL document store of record.
- app.security: Password hashing.

Guidelines:
- The service is stateless; rely on the external cache and database.
- The cache is advisory. The store of record is the source of truth.
"""
