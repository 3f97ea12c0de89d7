"""Clients for the external services the creative jobs depend on."""

from .auth import GoogleTokenProvider
from .google_ads import AdGroup, AdGroupAsset, GoogleAdsClient, ImageAsset
from .image_storage import ImageStorage, StoredImage, image_folder
from .search import collect_search_results
from .vertex_ai import (
    IMAGE_GENERATION_API_LIMIT,
    GenerationApiError,
    MalformedOutputError,
    VertexAiClient,
)

__all__ = [
    "AdGroup",
    "AdGroupAsset",
    "GenerationApiError",
    "GoogleAdsClient",
    "GoogleTokenProvider",
    "IMAGE_GENERATION_API_LIMIT",
    "ImageAsset",
    "ImageStorage",
    "MalformedOutputError",
    "StoredImage",
    "VertexAiClient",
    "collect_search_results",
    "image_folder",
]
