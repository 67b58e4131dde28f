"""BDTax backend: progressive income tax and trade duty services."""
