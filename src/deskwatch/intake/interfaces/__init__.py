"""Intake HTTP routes."""

from deskwatch.intake.interfaces.controllers import router as intake_router

__all__ = ["intake_router"]
