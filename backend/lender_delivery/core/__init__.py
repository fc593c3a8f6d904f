"""
Core package — cross-cutting concerns.

Modules:
    config          — environment variables & settings
    logging_config  — structured JSON logging + correlation context
    errors          — exception hierarchy & failure classification
    database        — async PostgreSQL connection (lender configuration store)
"""
