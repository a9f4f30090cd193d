"""State layer.

Holds the bus state tracker and the per-session record. Only the session
manager is allowed to mutate session state.
"""
