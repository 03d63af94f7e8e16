"""
goelo - Go player rating engine

Computes relative skill ratings for Go (Weiqi) players from a chronological
stream of match results.

Main components:
- elo: rating engine (grades, Elo exchange, uncertainty scaling,
  performance estimation, catch-up boost, promotion floor)
- config: environment-driven settings
- logging_setup: logging configuration
"""

__version__ = "1.0.0"
