from .envelope import ImageEnvelope, PlaceholderEnvelope, ResponseEnvelope
from .image_data import ProcessedImage
from .placeholder import PlaceholderDescriptor, PlaceholderPlan

__all__ = [
    "ImageEnvelope",
    "PlaceholderEnvelope",
    "ResponseEnvelope",
    "ProcessedImage",
    "PlaceholderDescriptor",
    "PlaceholderPlan",
]
