"""
HttpWatch: a watchdog that keeps locally launched HTTP servers alive.

Run it with `python -m httpwatch` or the `httpwatch` console script.
"""

__version__ = "1.0.0"
