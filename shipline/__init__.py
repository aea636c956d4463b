"""Shipline - test, build, push and deploy pipeline for containerized apps."""

__version__ = "1.0.0"
