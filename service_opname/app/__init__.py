"""
Stock Opname backend service package.

The service fronts the shared count store for field devices, enforcing:
- Serialized writes: a store-wide lock with a bounded, fail-fast wait
- Cache invalidation: a store-owned version token bumped once per commit
- Fast reads: a versioned, short-TTL read cache primed by prefix warming

Structure:
- app.main: FastAPI app and the `{action, ...}` envelope dispatcher.
- app.store: Tabular rows, the version counter and the store lock.
- app.mutations: The mutation coordinator (the only writer).
- app.caching: Versioned read cache and warmup orchestrator.
- app.queries: Cached read operations.
"""
