"""Table Haus reservation availability and order lifecycle engine"""

__version__ = "1.0.0"
