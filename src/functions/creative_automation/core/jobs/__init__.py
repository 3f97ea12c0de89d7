"""Jobs driven by the batch runner."""

from .base import AdGroupJob
from .extension import ImageExtensionJob
from .experiments import ExperimentsJob
from .generation import ImageGenerationJob
from .pause import ImagePauseJob, PromotionImagePauseJob
from .upload import ImageUploadJob
from .validation import ImageValidationJob

__all__ = [
    "AdGroupJob",
    "ExperimentsJob",
    "ImageExtensionJob",
    "ImageGenerationJob",
    "ImagePauseJob",
    "ImageUploadJob",
    "ImageValidationJob",
    "PromotionImagePauseJob",
]
