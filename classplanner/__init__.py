"""
classplanner - weekly class scheduling with trainer conflict detection.
"""

__version__ = "0.1.0"
