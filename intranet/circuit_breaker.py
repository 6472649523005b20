from pybreaker import CircuitBreaker

# Guards reservation writes: after repeated store failures we fail fast
# instead of piling more transactions onto a struggling database.
reservation_circuit_breaker = CircuitBreaker(
    fail_max=3,
    reset_timeout=60,
    name="reservation_store_breaker",
)
