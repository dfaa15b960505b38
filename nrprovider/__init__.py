"""
New Relic alert condition resource for declarative configuration engines.
"""

__version__ = "0.1.0"
