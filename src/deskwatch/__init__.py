"""
Deskwatch
=========

Helpdesk decision core:
- Priority decisions for new and re-evaluated tickets
- Inbound email intake guard (phishing and noise filtering)
- Shift-aware SLA time accounting
"""

__version__ = "1.0.0"
