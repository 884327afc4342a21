"""Iterative rounding engine, its policies and the problems built on it."""
