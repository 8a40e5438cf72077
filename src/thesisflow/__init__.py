"""ThesisFlow - thesis lifecycle workflow service"""

__version__ = "0.1.0"
