"""Storage adapters: S3 object storage and a JSON manifest record store."""

import json
import os
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .error_handling import with_error_handling
from .exceptions import UploadError
from .models import PhotoDraft, PhotoRecord
from .protocols import LoggerProtocol, S3ClientProtocol


class S3PhotoStorage:
    """Stores encoded variants in one S3 bucket and returns their URLs."""

    def __init__(
        self,
        s3_client: S3ClientProtocol,
        bucket: str,
        public_base_url: Optional[str] = None,
        logger: Optional[LoggerProtocol] = None,
    ):
        if not bucket:
            raise ValueError("bucket is required")
        self._s3_client = s3_client
        self._bucket = bucket
        self._public_base_url = public_base_url
        self._logger = logger

    def url_for(self, key: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url.rstrip('/')}/{key}"
        return f"https://{self._bucket}.s3.amazonaws.com/{key}"

    @with_error_handling(UploadError)
    def upload(self, key: str, data: bytes, content_type: str) -> str:
        if self._logger:
            self._logger.debug(f"Uploading {len(data)} bytes to s3://{self._bucket}/{key}")
        self._s3_client.put_object(
            Bucket=self._bucket, Key=key, Body=data, ContentType=content_type
        )
        return self.url_for(key)

    @with_error_handling(UploadError)
    def delete(self, key: str) -> None:
        self._s3_client.delete_object(Bucket=self._bucket, Key=key)


class ManifestRecordStore:
    """
    Record store backed by a single JSON file.

    Layout: ``{"albums": {album_id: {"photo_count": n}}, "photos": [...]}``.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {"albums": {}, "photos": []}
        with self._path.open("r", encoding="utf-8") as fh:
            return json.load(fh)

    def _save(self, data: Dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2)
        os.replace(tmp_path, self._path)

    def insert_photo(self, draft: PhotoDraft) -> PhotoRecord:
        record = PhotoRecord(
            id=str(uuid.uuid4()),
            album_id=draft.album_id,
            url=draft.url,
            original_url=draft.original_url,
            filename=draft.filename,
            sort_order=draft.sort_order,
        )
        with self._lock:
            data = self._load()
            data["photos"].append(
                {
                    **record.model_dump(mode="json"),
                    "storage_key": draft.storage_key,
                    "original_storage_key": draft.original_storage_key,
                    "width": draft.width,
                    "height": draft.height,
                }
            )
            self._save(data)
        return record

    def count_photos(self, album_id: str) -> int:
        with self._lock:
            data = self._load()
        return sum(1 for photo in data["photos"] if photo["album_id"] == album_id)

    def update_album_photo_count(self, album_id: str, count: int) -> None:
        with self._lock:
            data = self._load()
            data["albums"].setdefault(album_id, {})["photo_count"] = count
            self._save(data)

    def album_photo_count(self, album_id: str) -> Optional[int]:
        with self._lock:
            data = self._load()
        return data["albums"].get(album_id, {}).get("photo_count")
