"""Typed access layer over the DigitalOcean droplets API."""

__version__ = "0.1.0"
