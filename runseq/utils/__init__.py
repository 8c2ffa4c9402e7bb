"""Logging, deployment file loading and graph rendering helpers."""
