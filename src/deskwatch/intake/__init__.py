"""
Intake Context
==============

Screens inbound support mail for phishing risk and non-ticket noise before
it becomes a ticket.
"""
