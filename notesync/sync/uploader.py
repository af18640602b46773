"""
Image uploader for notesync.

Uploads the bytes of embedded images to the knowledge base and returns the
remote url that replaces the embed in the note.
"""

import base64
import logging
from typing import Optional

import httpx

from ..errors import ImageUploadError


class ImageUploader:
    """
    Uploads images over HTTP with a bearer token.
    """

    def __init__(self, api_token: Optional[str], upload_url: str, timeout: float = 30.0,
                 client: Optional[httpx.Client] = None):
        """
        Initialize the uploader.

        Args:
            api_token: Token of the syncing user
            upload_url: Image upload endpoint
            timeout: Request timeout in seconds
            client: Optional preconfigured httpx client
        """
        self.api_token = api_token
        self.upload_url = upload_url
        self.client = client or httpx.Client(timeout=timeout)

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def close(self):
        self.client.close()

    def upload(self, data: bytes, key: str, content_type: str) -> str:
        """
        Upload one image.

        Args:
            data: Image bytes
            key: Storage key, the vault path with spaces replaced by '+'
            content_type: MIME type, e.g. 'image/png'

        Returns:
            The remote url of the uploaded image

        Raises:
            ImageUploadError: If there is no token or the upload fails
        """
        if not self.api_token:
            raise ImageUploadError("Image sync failed. No API token.")

        payload = {
            "Body": base64.b64encode(data).decode("ascii"),
            "Key": key,
            "ContentEncoding": "base64",
            "ContentType": content_type,
        }

        try:
            response = self.client.post(
                self.upload_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_token}"}
            )
            response.raise_for_status()
            result = response.json()

        except httpx.RequestError as e:
            raise ImageUploadError(f"Failed to connect to image upload endpoint: {e}")
        except httpx.HTTPStatusError as e:
            raise ImageUploadError(f"Image upload failed: {e}")
        except ValueError as e:
            raise ImageUploadError(f"Image upload returned invalid JSON: {e}")

        url = result.get("url") if isinstance(result, dict) else None
        if not url:
            raise ImageUploadError(f"Image upload for {key} returned no url")

        logging.info(f"Uploaded image {key} to {url}")
        return url
