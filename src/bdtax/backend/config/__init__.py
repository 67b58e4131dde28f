"""Fiscal year and trade configuration for the BDTax backend."""
