"""
coffee_quality

Pipeline phân tích chất lượng cà phê: load -> clean -> split -> random forest / OLS -> evaluate.
"""
__version__ = "1.0.0"
