"""
Scheduling domain: booking, the waiting queue and staff assignment.

Routers live in .router; import them from there.
"""
