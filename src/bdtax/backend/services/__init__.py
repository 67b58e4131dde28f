"""Pure calculation services with no web or storage dependencies."""
