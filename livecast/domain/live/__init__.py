"""
Live broadcast domain logic.

Includes:
- stream: Client-side transport session controller (connect, health, reconnect).
- broadcast: Platform broadcast orchestrator (create, poll for live, end).
- coordinator: Binds one stream controller to one broadcast orchestrator.
"""
