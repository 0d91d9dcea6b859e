"""
Runtime settings for the language-model collaborator, read from the store or the environment
"""

import os
from typing import Optional

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, Field

from .storage import KeyValueStore

API_KEY_STORE_KEY = "groq_api_key"
DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_MODEL = "meta-llama/llama-4-scout-17b-16e-instruct"


class LLMSettings(BaseModel):
    """Connection settings for the OpenAI-compatible chat endpoint"""
    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    temperature: float = Field(default=0.7, ge=0, le=2)
    max_tokens: int = Field(default=2048, ge=1)
    timeout: float = Field(default=60.0, gt=0, description="Request timeout in seconds")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def load(cls, store: Optional[KeyValueStore] = None) -> "LLMSettings":
        """
        Build settings from the injected store, falling back to environment variables.

        A key saved in the store takes precedence over GROQ_API_KEY so that a
        key entered by the user overrides the deployment default.
        """
        load_dotenv()

        api_key = store.get(API_KEY_STORE_KEY) if store is not None else None
        if not api_key:
            api_key = os.getenv("GROQ_API_KEY")
        if not api_key:
            logger.warning("No language-model API key configured; narratives will use the local fallback")

        return cls(
            api_key=api_key or None,
            base_url=os.getenv("LINKANALYSIS_LLM_BASE_URL", DEFAULT_BASE_URL),
            model=os.getenv("LINKANALYSIS_LLM_MODEL", DEFAULT_MODEL),
        )


def save_api_key(store: KeyValueStore, api_key: str) -> None:
    """Persist the API key in the injected store"""
    store.set(API_KEY_STORE_KEY, api_key.strip())
