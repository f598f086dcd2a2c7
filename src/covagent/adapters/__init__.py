"""Adapters that produce and parse native coverage reports."""
