"""Capital advisors: deterministic pitch scoring and deal-structure analysis."""
