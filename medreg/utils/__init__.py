"""Shared helpers for contact values, codes and timestamps."""
