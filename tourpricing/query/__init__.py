"""Cached pricing reads."""

from tourpricing.query.service import PricingQueryService, clamp_paging

__all__ = ["PricingQueryService", "clamp_paging"]
