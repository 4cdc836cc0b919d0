"""
Stock Opname field-device data layer.

Structure:
- app.api_client: Envelope client with response caching, in-flight dedup and preloads.
- app.local_cache: Persisted device cache (stale-while-revalidate source).
- app.optimistic: Optimistic commands with snapshot rollback.
- app.views: History and product-list views.
- app.quantity: Quantity expression evaluator and entry field.
- app.notifications: Success/error notifications for the UI.
"""
