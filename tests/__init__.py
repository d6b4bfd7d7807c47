"""Test package for the cognitive assessment games.

Engine tests drive each game with a fake clock; the UI smoke tests run
headlessly using pygame's dummy video driver. Execute ``pytest`` from the
project root.
"""
