"""Synthetic input generators for seeding and simulating the ledger."""
