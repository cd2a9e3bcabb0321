"""Aggregate model imports so Base.metadata sees every table."""

from app.models.flag import OnboardingFlag  # noqa: F401
