"""
Core Infrastructure for phonos-ms.

This package provides foundational components:
    - config.py: Configuration loading and validation
    - errors.py: PhonosError hierarchy with stable message keys
    - logging/: Structured logging with numeric levels
    - metrics.py: Prometheus metrics collection
"""
