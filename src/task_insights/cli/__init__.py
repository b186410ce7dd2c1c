"""Command-line interface package for Task Insights."""

__all__ = ["main"]


def main(*args, **kwargs):
    """Entry point that defers heavy imports until needed."""
    from .analytics_commands import analytics_cli

    return analytics_cli(*args, **kwargs)
