"""Signbridge: human-approved message signing for untrusted callers."""
