"""
Demand Letter Drafter
Turns uploaded case exhibits into demand letter data and Word documents
"""

__version__ = "1.0.0"
