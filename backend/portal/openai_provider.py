"""
OpenAI Provider for the Grant Portal.

Centralizes the OpenAI client used by the assistant, narrative and vision
features. Azure OpenAI is used when both Azure variables are present,
otherwise the public OpenAI API.

Unlike the rest of the API, AI features are optional: with no credentials
``get_openai_client()`` returns None and the AI routes answer 503.

Environment Variables:
- AZURE_OPENAI_ENDPOINT / AZURE_OPENAI_KEY: Azure OpenAI endpoint and key
- AZURE_OPENAI_API_VERSION: API version for Azure (default: 2024-12-01-preview)
- OPENAI_API_KEY: Public OpenAI API key (used when Azure is not configured)
- OPENAI_CHAT_MODEL: Chat model or Azure deployment name (default: gpt-4.1-mini)
- OPENAI_VIDEO_MODEL: Video model (default: sora-2)

Usage:
    from portal.openai_provider import get_openai_client, get_chat_model
"""

import os
import logging
from typing import Optional, Union

from openai import AzureOpenAI, OpenAI

logger = logging.getLogger(__name__)

OpenAIClient = Union[OpenAI, AzureOpenAI]


# =============================================================================
# Configuration
# =============================================================================


def _get_optional_env(name: str, default: str) -> str:
    """Get an optional environment variable with a default value."""
    return os.getenv(name, default)


class OpenAIConfig:
    """OpenAI configuration container."""

    def __init__(self):
        """Load configuration from environment variables."""
        self.azure_endpoint = os.getenv("AZURE_OPENAI_ENDPOINT", "")
        self.azure_key = os.getenv("AZURE_OPENAI_KEY", "")
        self.azure_api_version = _get_optional_env(
            "AZURE_OPENAI_API_VERSION", "2024-12-01-preview"
        )
        self.api_key = os.getenv("OPENAI_API_KEY", "")

        self.chat_model = _get_optional_env("OPENAI_CHAT_MODEL", "gpt-4.1-mini")
        self.video_model = _get_optional_env("OPENAI_VIDEO_MODEL", "sora-2")

    @property
    def use_azure(self) -> bool:
        return bool(self.azure_endpoint and self.azure_key)

    @property
    def configured(self) -> bool:
        return self.use_azure or bool(self.api_key)

    def log_configuration(self):
        """Log the current configuration (without sensitive data)."""
        logger.info("OpenAI Configuration:")
        logger.info(f"  Provider: {'azure' if self.use_azure else 'openai'}")
        if self.use_azure:
            logger.info(f"  Endpoint: {self.azure_endpoint}")
            logger.info(f"  API Version: {self.azure_api_version}")
        logger.info(f"  Chat Model: {self.chat_model}")
        logger.info(f"  Video Model: {self.video_model}")


# =============================================================================
# Client Initialization
# =============================================================================

_config: Optional[OpenAIConfig] = None
_client: Optional[OpenAIClient] = None


def get_config() -> OpenAIConfig:
    global _config
    if _config is None:
        _config = OpenAIConfig()
    return _config


def _create_client(config: OpenAIConfig) -> OpenAIClient:
    """Create a synchronous OpenAI or Azure OpenAI client."""
    if config.use_azure:
        return AzureOpenAI(
            api_key=config.azure_key,
            api_version=config.azure_api_version,
            azure_endpoint=config.azure_endpoint,
        )
    return OpenAI(api_key=config.api_key)


def get_openai_client() -> Optional[OpenAIClient]:
    """
    Return the shared client, creating it on first use.

    Returns:
        The configured client, or None when no credentials are set.
    """
    global _client
    if _client is not None:
        return _client

    config = get_config()
    if not config.configured:
        logger.warning("OpenAI is not configured; AI features are disabled")
        return None

    _client = _create_client(config)
    config.log_configuration()
    logger.info("OpenAI client initialized successfully")
    return _client


def reset_client() -> None:
    """Forget the cached configuration and client (used after env changes)."""
    global _config, _client
    _config = None
    _client = None


# =============================================================================
# Convenience Functions for Model Names
# =============================================================================


def get_chat_model() -> str:
    """Get the chat model (or Azure deployment) name."""
    return get_config().chat_model


def get_video_model() -> str:
    """Get the video generation model name."""
    return get_config().video_model


__all__ = [
    "OpenAIClient",
    "get_openai_client",
    "get_chat_model",
    "get_video_model",
    "reset_client",
]
