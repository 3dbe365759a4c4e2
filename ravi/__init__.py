"""RAVI - Relative AI Visibility Index engine.

Probes several text-generation providers with a fixed pool of questions,
detects how often and how prominently each entity is mentioned, and folds
the signals into normalized 0-100 scores.
"""

__version__ = "0.1.0"
