"""
SSE Gateway Components.

Organized into domain-specific modules:
- core/       - Constants, connection states, error taxonomy
- connection/ - Transport, heartbeat timer, connection entry
- events/     - Bus record value object and SSE framing
- resilience/ - Bus reconnect policy
- metrics/    - Routing counters

New code should import from specific submodules for clarity.
"""
