"""
                QuickBite Food Ordering

Order placement backend with an idempotent order endpoint, plus the
async checkout client that drives the countdown and order history.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
