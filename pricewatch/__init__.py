"""PriceWatch backend package."""
