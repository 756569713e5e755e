"""Normalizers turning parsed feed documents into domain values."""

from feed_ingest.adapters.normalizers.rss_normalizer import FeedNormalizer

__all__ = ["FeedNormalizer"]
