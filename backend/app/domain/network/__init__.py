"""Follow and connection graph."""
