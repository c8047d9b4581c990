"""
messaging — Outbound message dispatch core.

Sub-modules:
    providers/      — Delivery backends (simulated, webhook)
    models          — DeliveryStatus, DeliveryRecord, DispatchStats
    ledger          — Status ledger + FIFO dispatch queue
    provider_pool   — Round-robin provider cursor and failover policy
    retry_engine    — Per-message attempt / backoff / re-attempt chain
    scheduler       — Tick-gated, capacity-gated admission control
    events          — "queued" observer hook
    dispatcher      — Facade wiring the above into one instance
"""
