"""NLIP API adapter package.

Architectural role:
- Defines the external HTTP boundary of the router.
- Performs transport-level parsing and error shaping.
- Delegates protocol handling to the core layer.
"""
