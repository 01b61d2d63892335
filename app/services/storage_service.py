"""
Supabase Storage Service for cloud file storage.

Handles uploading and retrieving rendered report files from Supabase Storage.
Falls back to the local filesystem if Supabase is not configured.
"""
import asyncio
import logging
import os
from typing import Optional

from supabase import create_client, Client

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)

FILES_ROUTE = "/api/reports/files"


class StorageService:
    """Report file storage with a local-filesystem fallback."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._client: Optional[Client] = None
        self._client_checked = False

    def get_client(self) -> Optional[Client]:
        """Create the Supabase client once; None when not configured."""
        if self._client_checked:
            return self._client
        self._client_checked = True

        if not self.settings.supabase_url or not self.settings.supabase_service_key:
            logger.info("Supabase Storage not configured - using local filesystem")
            return None

        try:
            self._client = create_client(self.settings.supabase_url, self.settings.supabase_service_key)
            logger.info("Supabase Storage client initialized")
        except Exception as e:
            logger.error(f"Failed to initialize Supabase client: {e}")
            self._client = None
        return self._client

    @property
    def enabled(self) -> bool:
        """Check if cloud storage is enabled and working."""
        return self.get_client() is not None

    def _full_url(self, relative_path: str) -> str:
        """Get full URL for a relative path, using backend_url if configured."""
        if self.settings.backend_url:
            return f"{self.settings.backend_url.rstrip('/')}{relative_path}"
        return relative_path

    def local_path(self, file_path: str) -> str:
        """Local file for a storage path. Only the basename is used."""
        return os.path.join(self.settings.reports_output_path, os.path.basename(file_path))

    async def upload_file(
        self,
        file_content: bytes,
        file_path: str,
        content_type: str = "application/octet-stream",
    ) -> str:
        """
        Upload a file to Supabase Storage.

        Args:
            file_content: The file bytes to upload
            file_path: Path/name for the file in storage (e.g., "reports/report_123.html")
            content_type: MIME type of the file

        Returns:
            Public URL of the uploaded file, or the local file route on fallback
        """
        client = self.get_client()
        if client is None:
            return await self._save_local(file_content, file_path)

        bucket = client.storage.from_(self.settings.supabase_storage_bucket)
        try:
            await asyncio.to_thread(
                bucket.upload,
                path=file_path,
                file=file_content,
                file_options={"content-type": content_type, "upsert": "true"},
            )
            public_url = bucket.get_public_url(file_path)
            logger.info(f"File uploaded to Supabase: {file_path}")
            return public_url
        except Exception as e:
            logger.error(f"Failed to upload to Supabase Storage: {e}")
            # Fallback to local storage
            return await self._save_local(file_content, file_path)

    async def get_file(self, file_path: str) -> Optional[bytes]:
        """Read a stored file, or None if not found."""
        client = self.get_client()
        if client is None:
            return await self._read_local(file_path)

        try:
            bucket = client.storage.from_(self.settings.supabase_storage_bucket)
            return await asyncio.to_thread(bucket.download, file_path)
        except Exception as e:
            logger.error(f"Failed to download from Supabase Storage: {e}")
            return await self._read_local(file_path)

    async def delete_file(self, file_path: str) -> bool:
        """Delete a stored file. Returns True if something was removed."""
        client = self.get_client()
        if client is None:
            return await self._delete_local(file_path)

        try:
            bucket = client.storage.from_(self.settings.supabase_storage_bucket)
            await asyncio.to_thread(bucket.remove, [file_path])
            logger.info(f"File deleted from Supabase: {file_path}")
            return True
        except Exception as e:
            logger.error(f"Failed to delete from Supabase Storage: {e}")
            return False

    # Local filesystem fallback

    async def _save_local(self, file_content: bytes, file_path: str) -> str:
        local_path = self.local_path(file_path)
        os.makedirs(os.path.dirname(local_path) or ".", exist_ok=True)

        with open(local_path, "wb") as f:
            f.write(file_content)

        logger.info(f"File saved locally: {local_path}")
        return self._full_url(f"{FILES_ROUTE}/{os.path.basename(file_path)}")

    async def _read_local(self, file_path: str) -> Optional[bytes]:
        local_path = self.local_path(file_path)
        if not os.path.exists(local_path):
            return None

        with open(local_path, "rb") as f:
            return f.read()

    async def _delete_local(self, file_path: str) -> bool:
        local_path = self.local_path(file_path)
        if os.path.exists(local_path):
            os.remove(local_path)
            return True
        return False

    # Report helpers

    async def upload_report(self, html_content: str, filename: str) -> str:
        """Store an HTML report and return its URL."""
        return await self.upload_file(
            file_content=html_content.encode("utf-8"),
            file_path=f"reports/{filename}",
            content_type="text/html",
        )

    async def upload_pdf(self, pdf_content: bytes, filename: str) -> str:
        """Store a PDF report and return its URL."""
        return await self.upload_file(
            file_content=pdf_content,
            file_path=f"pdfs/{filename}",
            content_type="application/pdf",
        )
