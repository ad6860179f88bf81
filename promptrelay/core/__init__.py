"""Core contracts package.

Architectural role:
    Holds the data contracts shared across layers.

Composition:
    - `errors`: relay error taxonomy and HTTP status mapping.
    - `request_types`: caller payload schema and `CompletionRequest`.
    - `event_types`: stream frames and normalized push events.

Package import is deterministic and side-effect free.
"""
