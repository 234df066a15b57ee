"""Storage adapters shipped with the package."""
