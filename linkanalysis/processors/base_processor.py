"""
Abstract base processor class for ensuring consistent interfaces
"""

from abc import ABC, abstractmethod
from typing import Any

from linkanalysis.core.models import ProcessingConfig, UploadedFile


class BaseProcessor(ABC):
    """Abstract base class for all file processors"""

    def __init__(self, config: ProcessingConfig):
        self.config = config

    @abstractmethod
    def process(self, file: UploadedFile) -> Any:
        """Process an uploaded file and return its structured content"""
        pass

    @abstractmethod
    def validate_input(self, file: UploadedFile) -> bool:
        """Check whether this processor can handle the file"""
        pass
