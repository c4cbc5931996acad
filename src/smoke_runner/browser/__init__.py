"""Browser session implementations."""
