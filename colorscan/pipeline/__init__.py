"""Bounded-concurrency pipeline from URL list to colour rows."""
