"""Orchestration core for bus schedule search, seat booking, and payment."""
