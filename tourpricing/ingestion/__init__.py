"""Pricing CSV ingestion: decoding, validation, dimension resolution and upload."""
