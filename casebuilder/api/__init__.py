"""HTTP surface of the case builder."""
