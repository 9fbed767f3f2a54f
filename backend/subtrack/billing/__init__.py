"""Billing: cycle arithmetic, history recording, renewal jobs."""
