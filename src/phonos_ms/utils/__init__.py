"""
Utility Modules for phonos-ms.

    - timeit.py: Performance measurement utilities
"""
