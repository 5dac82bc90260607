"""Scheduling core: weekly schedules, the booking ledger, slot generation and reservations.

Submodules are imported directly (``booking_engine.engine.slot_generator``
and so on); storage contracts depend on ``engine.schedule``, so this package
does not re-export its members.
"""
