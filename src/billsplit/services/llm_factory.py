import os
from enum import Enum
from typing import Dict

from loguru import logger
from openai import AsyncAzureOpenAI
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider

from ..core.config import AZURE_CONFIG, OPENROUTER_KEY_ENV, settings


class LLMProviderType(Enum):
    AZURE_OPENAI = "azure_openai"
    OPENROUTER = "openrouter"


_client_cache: Dict[str, AsyncAzureOpenAI] = {}  # cache for Azure OpenAI clients
_model_cache: Dict[str, OpenAIChatModel] = {}  # cache for LLM models


def _get_azure_client(
        endpoint: str, api_key: str,
        api_version: str
) -> AsyncAzureOpenAI:
    """Creates or retrieves a cached AsyncAzureOpenAI client."""

    client_key = f"{endpoint}:{api_version}"
    if client_key not in _client_cache:
        logger.info(f"Creating new AsyncAzureOpenAI client for endpoint: {endpoint}")
        if not endpoint or not api_key:
            raise ValueError("Endpoint or API key are missing, both must be provided.")

        try:
            _client_cache[client_key] = AsyncAzureOpenAI(
                azure_endpoint=endpoint,
                api_key=api_key,
                api_version=api_version,
            )
        except Exception as e:
            logger.error(f"Failed to create AsyncAzureOpenAI client: {e}")
            raise
    else:
        logger.info(f"Using cached AsyncAzureOpenAI client for endpoint: {endpoint}")
    return _client_cache[client_key]


def _build_azure_model(model_name: str, **kwargs) -> OpenAIChatModel:
    if model_name not in AZURE_CONFIG:
        raise ValueError(f"Model {model_name} not found in AZURE_CONFIG.")
    config = AZURE_CONFIG[model_name]
    endpoint = os.getenv(config["endpoint_env"])
    api_key = os.getenv(config["key_env"])
    api_version = os.getenv(config["version_env"], config["default_version"])

    if not endpoint or not api_key:
        raise ValueError("Endpoint or API key are missing, both must be provided.")

    client = _get_azure_client(endpoint=endpoint, api_key=api_key, api_version=api_version)
    provider_instance = OpenAIProvider(openai_client=client)
    return OpenAIChatModel(config["deployment_name"], provider=provider_instance, **kwargs)


def _build_openrouter_model(model_name: str, **kwargs) -> OpenAIChatModel:
    api_key = os.getenv(OPENROUTER_KEY_ENV)
    if not api_key:
        raise ValueError(f"{OPENROUTER_KEY_ENV} is not configured. Please add it to your .env file.")

    provider_instance = OpenAIProvider(base_url=settings.openrouter_base_url, api_key=api_key)
    return OpenAIChatModel(model_name, provider=provider_instance, **kwargs)


def get_model(
        model_name: str,
        provider_type: LLMProviderType = LLMProviderType.OPENROUTER,
        **kwargs,
) -> OpenAIChatModel:
    """Retrieves a model based on the provided model name and provider type.

    Args:
        model_name (str): Logical name (Azure, must match a key in AZURE_CONFIG) or model slug (OpenRouter).
        provider_type (LLMProviderType): The type of LLM provider (instance of LLMProviderType).
        **kwargs: Additional arguments for the model.

    Raises:
        ValueError: unknown provider or model, or missing credentials."""

    if not isinstance(provider_type, LLMProviderType):
        raise ValueError("provider_type must be an instance of LLMProviderType.")

    cache_key = f"{provider_type.value}:{model_name}"
    if cache_key in _model_cache:
        logger.info(f"Using cached model for {cache_key}")
        return _model_cache[cache_key]

    logger.info(f"Creating new model instance for key: {cache_key}")

    # provider specific logic
    if provider_type == LLMProviderType.AZURE_OPENAI:
        model_instance = _build_azure_model(model_name, **kwargs)
    elif provider_type == LLMProviderType.OPENROUTER:
        model_instance = _build_openrouter_model(model_name, **kwargs)
    else:
        raise ValueError(f"Unsupported provider type: {provider_type}.")

    _model_cache[cache_key] = model_instance
    logger.info(f"Successfully created and cached model instance for {cache_key}")
    return model_instance


def get_default_model() -> OpenAIChatModel:
    """Model named by the application settings."""
    try:
        provider_type = LLMProviderType(settings.llm_provider)
    except ValueError:
        raise ValueError(f"Unsupported provider type: {settings.llm_provider}.")
    return get_model(settings.llm_model_name, provider_type)
