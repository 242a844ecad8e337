"""Raised-amount projections over the event ledger and Bitcoin monitor."""
