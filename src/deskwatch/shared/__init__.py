"""
Shared Kernel Module
====================

Shared infrastructure used across all bounded contexts (priority, intake, sla).

Architecture Pattern: Modular Monolith
- Each module is a bounded context
- Shared kernel contains only generic infrastructure and text helpers

DO NOT add business logic from priority, intake or sla to the shared kernel.
"""
