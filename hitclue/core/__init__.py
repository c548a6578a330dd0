"""Core computational modules for hitclue.

This package contains the clustering engine:
- clustering: noise model, tile index, CLUE passes and orchestration
"""
