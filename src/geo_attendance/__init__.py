"""Geofenced attendance session engine.

This package is organized by feature modules (geo, sessions, marking, courses)
with a thin Flask controller layer over service/repository layers.
"""
