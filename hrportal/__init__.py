"""HR Portal backend package."""
