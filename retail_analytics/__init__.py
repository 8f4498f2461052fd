"""Aggregation core for the retail back office dashboards.

Pure functions turn a window of receipts into overview KPIs, daily series,
store and category tables, customer segments, loyalty statistics and
environmental estimates. :mod:`retail_analytics.service` wires them to the
data layer.
"""

__version__ = "0.1.0"
