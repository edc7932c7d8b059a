"""HTTP surface for the equivalent plan generator."""
