"""Graph helpers used by separation oracles.

This package provides min-cut computation on auxiliary flow networks
(`min_cut`).
"""
