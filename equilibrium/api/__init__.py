"""HTTP surface over the pool engine."""
