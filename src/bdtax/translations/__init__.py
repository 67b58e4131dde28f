"""JSON translation catalogues bundled with the BDTax backend."""
