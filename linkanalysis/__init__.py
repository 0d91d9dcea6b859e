"""
Link analysis for Brazilian investigative data: tables, RIF reports and case documents
"""

__version__ = "0.1.0"
