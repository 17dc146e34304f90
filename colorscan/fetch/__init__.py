"""HTTP access to remote images."""

from .image_client import FetchedImage, ImageFetchClient

__all__ = ["FetchedImage", "ImageFetchClient"]
