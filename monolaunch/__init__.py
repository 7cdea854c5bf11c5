# monolaunch Package
"""
Single-instance application launcher core.

Parts:
  - Instance lock: one launcher per user session, second launches surface it
  - Program index: desktop entries ranked by how often they are run
  - Preferences: persisted run counters
"""

__version__ = "0.1.0-dev"
