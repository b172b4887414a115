"""Verification API backing the medical platform's registration wizard."""
