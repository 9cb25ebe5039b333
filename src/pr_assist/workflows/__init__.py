"""CI workflows: describe, review, scaffold tests, Vertex smoke check."""
