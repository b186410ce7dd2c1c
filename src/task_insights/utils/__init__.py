"""Shared helpers for Task Insights."""
