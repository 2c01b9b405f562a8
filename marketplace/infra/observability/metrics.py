from prometheus_client import Counter, Histogram


# Offer Metrics
offers_created_total = Counter("marketplace_offers_created_total", "Offers created", ["status"])
offers_resolved_total = Counter(
    "marketplace_offers_resolved_total", "Offers moved out of pending", ["outcome"]  # accepted/rejected/expired
)

# Order Metrics
orders_created_total = Counter(
    "marketplace_orders_created_total", "Orders created", ["source", "status"]  # source: offer/direct
)
order_value = Histogram(
    "marketplace_order_value",
    "Order total distribution",
    buckets=[1000, 5000, 10000, 20000, 50000, 100000, 200000, float("inf")],
)
sale_reviews_total = Counter("marketplace_sale_reviews_total", "Admin sale reviews", ["decision"])

# Concurrency Metrics
listing_lock_wait_seconds = Histogram("marketplace_listing_lock_wait_seconds", "Time spent acquiring listing locks")

# Expiry sweep Metrics
expired_records_total = Counter("marketplace_expired_records_total", "Records expired by sweeps", ["kind"])
