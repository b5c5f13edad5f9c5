"""Bitmask, snapshot and aggregation core."""
