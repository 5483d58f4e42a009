"""
Investment Analytics Engine

Turns dated cash flows and point-in-time asset valuations into
risk/return metrics:
- Money-weighted return (XIRR) and CAGR
- Benchmark comparison (alpha)
- Sector allocation and entropy-based diversification score
- Dividend aggregation
- Volatility, Sharpe ratio, maximum drawdown
"""

__version__ = "1.0.0"
