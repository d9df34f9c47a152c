import asyncio
import json
import mimetypes
from pathlib import Path
from typing import BinaryIO, Optional, Union
from urllib.parse import quote

import aiohttp
from pydantic import BaseModel, Field

from .endpoint import APIBase
from .errors import UnsupportedFileError
from .fetcher import Fetcher
from .types import APIResult, KeyValuePair

FileBody = Union[bytes, bytearray, BinaryIO, Path]


class FileUploadOptions(BaseModel):
    is_public: Optional[bool] = Field(default=None, serialization_alias="isPublic")
    """Defaults to the bucket's privacy setting when not set."""
    create_bucket: bool = Field(default=False, serialization_alias="createBucket")
    upsert: bool = False
    tags: KeyValuePair = Field(default_factory=dict)


async def file_body_to_bytes(file_body: FileBody) -> bytes:
    if isinstance(file_body, (bytes, bytearray)):
        return bytes(file_body)

    if isinstance(file_body, Path):
        if not file_body.is_file():
            raise UnsupportedFileError(f"File not found: {file_body}")
        return await asyncio.to_thread(file_body.read_bytes)

    if hasattr(file_body, "read"):
        content = await asyncio.to_thread(file_body.read)
        if isinstance(content, str):
            content = content.encode()
        return content

    raise UnsupportedFileError("You can only upload bytes, file objects or paths through the Agnost client library")


class BucketManager(APIBase):
    """Uploads files to one bucket of an app storage."""

    def __init__(self, storage_name: str, bucket_name: str, fetcher: Fetcher) -> None:
        super().__init__(fetcher)
        self.storage_name = storage_name
        self.bucket_name = bucket_name

    async def upload(
        self,
        file_name: str,
        file_body: FileBody,
        options: Optional[FileUploadOptions] = None,
        content_type: Optional[str] = None,
    ) -> APIResult:
        """
        Upload a file to the bucket.

        Args:
            file_name: Name of the file in the bucket, e.g. ``avatar.png``
            file_body: Raw bytes, an open binary file or a Path
            options: Privacy, bucket creation, upsert and tags
            content_type: Defaults to a guess based on ``file_name``

        Returns:
            APIResult with the uploaded file metadata

        Raises:
            UnsupportedFileError: If ``file_body`` is not an uploadable type
        """
        content = await file_body_to_bytes(file_body)
        opts = options or FileUploadOptions()
        if content_type is None:
            content_type = mimetypes.guess_type(file_name)[0] or "application/octet-stream"

        form = aiohttp.FormData()
        form.add_field("file", content, filename=file_name, content_type=content_type)
        form.add_field("fileName", file_name)
        form.add_field("options", json.dumps(opts.model_dump(by_alias=True, exclude_none=True)))

        path = f"/storage/{quote(self.storage_name)}/bucket/{quote(self.bucket_name)}/upload-formdata"
        return await self.fetcher.upload(path, form)


class StorageManager(APIBase):
    """Gives access to the buckets of one app storage."""

    def __init__(self, storage_name: str, fetcher: Fetcher) -> None:
        super().__init__(fetcher)
        self.storage_name = storage_name

    def bucket(self, name: str) -> BucketManager:
        return BucketManager(self.storage_name, name, self.fetcher)
