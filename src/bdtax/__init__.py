"""BDTax citizen/officer tax and trade calculation portal."""
