"""Agents for coverage analysis and reporting."""
