"""
submissions — Multi-channel lender submission delivery.

Sub-modules:
    channels/       — Per-channel delivery adapters (email, partner API, spreadsheet ledger)
    models          — Payload, result and profile data structures
    column_maps     — Versioned ledger header → payload path registry
    field_paths     — Dotted-path resolution and cell formatting
    store           — Lender configuration store (SQLAlchemy / in-memory)
    profiles        — Profile resolution and eager config validation
    router          — Channel selection and the single submit() entry point
    service         — deliver_submission(): resolve → route → submit → log
"""
