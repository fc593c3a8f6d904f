"""
channels — Per-channel delivery adapters.

Each channel module exposes a SubmissionChannel subclass:
    submit(payload) → SubmissionResult

Channels never raise from submit(). Retry decisions live with the caller.
"""
