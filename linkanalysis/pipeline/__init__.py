"""
Orchestration of the processors, synchronous and in the background
"""

from .link_pipeline import LinkAnalysisPipeline
from .background_parser import BackgroundParser
