"""Declarative browser smoke-test runner built on Playwright."""
