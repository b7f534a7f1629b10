"""
Shared Infrastructure
=====================

Low-level technical concerns:
- Logging setup
- Metrics export
- Resilience helpers for external calls
"""
