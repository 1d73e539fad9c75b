"""Telemetry engine for the microservices dashboard.

This package contains the in-memory metrics store, the analytics queries
and the background maintenance tasks, isolated from the web layer so it
can be driven directly from tests.
"""
