"""Celery task definitions package."""

from storefront.tasks import guests  # noqa: F401

__all__ = ["guests"]
