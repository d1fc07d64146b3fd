"""Storefront cart layer: resilient mutations over a remote commerce cart API."""

__version__ = "0.1.0"
