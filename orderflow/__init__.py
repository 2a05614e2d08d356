"""
Orderflow: order routing, worklist classification and order teardown for
multi-party manufacturing orders.
"""

__version__ = "1.0.0"
