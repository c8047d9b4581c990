"""
providers — Delivery backends.

Each provider exposes:
    async attempt_delivery(message_id) → bool

Providers report one attempt. Retry and failover live in the
retry engine and provider pool.
"""
