"""
Domain layer containing the live-broadcast controllers.

Submodules:
- live: Transport session, platform broadcast and the coordinator binding them.
- utils: Domain-specific utilities (periodic timers, state notifications).
"""
