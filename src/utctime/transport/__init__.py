"""Transports — STDIO line channel and HTTP surface."""
