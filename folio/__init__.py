"""Personal holdings tracker with weighted-average cost accounting."""

__version__ = "0.1.0"
