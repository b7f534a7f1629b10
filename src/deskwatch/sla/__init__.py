"""
SLA Context
===========

Shift-scoped SLA time accounting: ticket timer events are replayed into
elapsed minutes that only count while the tagged shift is on duty.
"""
