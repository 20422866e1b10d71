"""Pytest configuration for the Deletion Toolkit."""


def pytest_configure(config):
    """Configure pytest with custom settings."""
    config.addinivalue_line(
        "markers", "race: simulates a concurrent deletion between load and mutation"
    )
