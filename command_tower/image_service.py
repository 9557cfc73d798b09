"""Download card images, falling back to a placeholder card back."""

import logging
from typing import Optional

import requests

from .models import CardImage


class ImageService:
    """Resolves image URIs into image bytes for display."""

    def __init__(self, placeholder_url: str, timeout: int = 15,
                 user_agent: str = "CommandTower/0.1.0"):
        self.logger = logging.getLogger(__name__)
        self.placeholder_url = placeholder_url
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update({'User-Agent': user_agent})

        self._placeholder: Optional[CardImage] = None

    @classmethod
    def from_config(cls, config) -> 'ImageService':
        return cls(
            placeholder_url=config.placeholder_image_url,
            timeout=config.request_timeout_seconds,
            user_agent=config.user_agent
        )

    def resolve(self, uri: str) -> CardImage:
        """
        Download an image, or the placeholder if that fails.

        Args:
            uri: Image URI, may be empty

        Returns:
            CardImage; never raises
        """
        if uri:
            content, content_type = self._download(uri)
            if content:
                return CardImage(uri=uri, content=content, content_type=content_type)
            self.logger.warning(f"Could not load image {uri}, using placeholder")

        return self.placeholder()

    def placeholder(self) -> CardImage:
        """Get the placeholder image, downloading it once per session."""
        if self._placeholder is not None and not self._placeholder.is_empty:
            return self._placeholder

        content, content_type = self._download(self.placeholder_url)
        if not content:
            # TODO: ship the card back with the package instead of downloading it
            self.logger.error(f"Could not load placeholder image {self.placeholder_url}")

        self._placeholder = CardImage(
            uri=self.placeholder_url,
            content=content,
            content_type=content_type,
            is_placeholder=True
        )
        return self._placeholder

    def _download(self, uri: str):
        try:
            response = self.session.get(uri, timeout=self.timeout)
            response.raise_for_status()
            return response.content, response.headers.get('Content-Type', '')
        except requests.RequestException as e:
            self.logger.debug(f"Image download failed for {uri}: {e}")
            return b"", ""
