"""Outbound webhook payloads and delivery jobs."""
