"""Google Drive storage with OAuth 2.0 authentication."""

import json
import logging
from io import BytesIO
from typing import Any, Dict, List, Optional

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


class GoogleDriveStorage:
    """Store JSON documents in the user's Drive, one subfolder per table."""

    APP_FOLDER_NAME = "WorkoutTracker"

    def __init__(
        self,
        credentials: Optional[Credentials],
        app_folder_name: Optional[str] = None,
        service: Optional[Any] = None,
    ) -> None:
        """
        Initialize Google Drive storage with OAuth credentials.

        Args:
            credentials: Google OAuth 2.0 credentials from user authentication
            app_folder_name: Name of the root folder (default: WorkoutTracker)
            service: Prebuilt Drive v3 service, built from credentials if omitted
        """
        self.credentials = credentials
        self.app_folder_name = app_folder_name or self.APP_FOLDER_NAME
        self.service = service or build("drive", "v3", credentials=credentials)
        self.app_folder_id: Optional[str] = None
        self._subfolder_ids: Dict[str, str] = {}

    def _ensure_app_folder(self) -> str:
        """
        Ensure the app folder exists on user's Drive.

        Returns:
            Folder ID of the app folder
        """
        if self.app_folder_id:
            return self.app_folder_id

        query = (
            f"name='{self.app_folder_name}' and "
            f"mimeType='{FOLDER_MIME_TYPE}' and "
            "trashed=false"
        )
        results = (
            self.service.files()
            .list(q=query, spaces="drive", fields="files(id, name)")
            .execute()
        )
        files = results.get("files", [])

        if files:
            self.app_folder_id = files[0]["id"]
            return self.app_folder_id

        folder_metadata = {"name": self.app_folder_name, "mimeType": FOLDER_MIME_TYPE}
        folder = self.service.files().create(body=folder_metadata, fields="id").execute()
        self.app_folder_id = folder.get("id")
        logger.info(f"Created app folder {self.app_folder_name}")
        return self.app_folder_id

    def _find_child_folder(self, parent_folder_id: str, folder_name: str) -> Optional[str]:
        query = (
            f"name='{folder_name}' and "
            f"'{parent_folder_id}' in parents and "
            f"mimeType='{FOLDER_MIME_TYPE}' and "
            "trashed=false"
        )
        results = (
            self.service.files()
            .list(q=query, spaces="drive", fields="files(id, name)")
            .execute()
        )
        files = results.get("files", [])
        return files[0]["id"] if files else None

    def _resolve_folder(self, subfolder: Optional[str], create: bool) -> Optional[str]:
        """
        Walk ``subfolder`` (e.g. 'workouts' or 'a/b') below the app folder.

        Returns:
            Folder ID, or None when a part is missing and ``create`` is False
        """
        folder_id = self._ensure_app_folder()
        if not subfolder:
            return folder_id

        cached = self._subfolder_ids.get(subfolder)
        if cached:
            return cached

        for part in subfolder.split("/"):
            child_id = self._find_child_folder(folder_id, part)
            if child_id is None:
                if not create:
                    return None
                folder_metadata = {
                    "name": part,
                    "mimeType": FOLDER_MIME_TYPE,
                    "parents": [folder_id],
                }
                child_id = (
                    self.service.files().create(body=folder_metadata, fields="id").execute()
                ).get("id")
            folder_id = child_id

        self._subfolder_ids[subfolder] = folder_id
        return folder_id

    def _find_file_id(self, filename: str, folder_id: str) -> Optional[str]:
        query = (
            f"name='{filename}' and "
            f"'{folder_id}' in parents and "
            "trashed=false"
        )
        results = (
            self.service.files()
            .list(q=query, spaces="drive", fields="files(id)")
            .execute()
        )
        files = results.get("files", [])
        return files[0]["id"] if files else None

    def save_json(
        self, filename: str, data: Dict[str, Any], subfolder: Optional[str] = None
    ) -> str:
        """
        Save JSON data to Google Drive, replacing the file if it exists.

        Args:
            filename: Name of the file (e.g., '<record id>.json')
            data: Dictionary to save as JSON
            subfolder: Optional subfolder path (e.g., 'workouts')

        Returns:
            File ID on Google Drive
        """
        folder_id = self._resolve_folder(subfolder, create=True)
        file_id = self._find_file_id(filename, folder_id)

        json_data = json.dumps(data, ensure_ascii=False, indent=2)
        media = MediaIoBaseUpload(
            BytesIO(json_data.encode("utf-8")), mimetype="application/json"
        )

        if file_id:
            self.service.files().update(fileId=file_id, media_body=media).execute()
            return file_id

        file_metadata = {"name": filename, "parents": [folder_id]}
        file = (
            self.service.files()
            .create(body=file_metadata, media_body=media, fields="id")
            .execute()
        )
        return file.get("id")

    def _download_json(self, file_id: str) -> Any:
        request = self.service.files().get_media(fileId=file_id)
        fh = BytesIO()
        downloader = MediaIoBaseDownload(fh, request)

        done = False
        while not done:
            _, done = downloader.next_chunk()

        fh.seek(0)
        return json.loads(fh.read().decode("utf-8"))

    def load_json(self, filename: str, subfolder: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Load JSON data from Google Drive.

        Args:
            filename: Name of the file
            subfolder: Optional subfolder path

        Returns:
            Dictionary with data or None if file doesn't exist
        """
        folder_id = self._resolve_folder(subfolder, create=False)
        if folder_id is None:
            return None

        file_id = self._find_file_id(filename, folder_id)
        if not file_id:
            return None
        return self._download_json(file_id)

    def delete_file(self, filename: str, subfolder: Optional[str] = None) -> bool:
        """
        Delete a file from Google Drive.

        Returns:
            True if deleted, False if there was nothing to delete
        """
        folder_id = self._resolve_folder(subfolder, create=False)
        if folder_id is None:
            return False

        file_id = self._find_file_id(filename, folder_id)
        if not file_id:
            return False

        self.service.files().delete(fileId=file_id).execute()
        return True

    def list_files(
        self,
        subfolder: Optional[str] = None,
        order_by: str = "createdTime desc",
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        List files in app folder or subfolder.

        Args:
            subfolder: Optional subfolder path
            order_by: Drive orderBy expression
            limit: Maximum number of files to return

        Returns:
            List of file metadata dictionaries with 'name', 'id', 'createdTime'
        """
        folder_id = self._resolve_folder(subfolder, create=False)
        if folder_id is None:
            return []

        query = f"'{folder_id}' in parents and trashed=false and mimeType!='{FOLDER_MIME_TYPE}'"
        files: List[Dict[str, Any]] = []
        page_token = None
        while True:
            page_size = min(limit - len(files), 100) if limit else 100
            results = (
                self.service.files()
                .list(
                    q=query,
                    spaces="drive",
                    orderBy=order_by,
                    pageSize=page_size,
                    pageToken=page_token,
                    fields="nextPageToken, files(name, id, createdTime)",
                )
                .execute()
            )
            files.extend(results.get("files", []))
            page_token = results.get("nextPageToken")
            if not page_token or (limit and len(files) >= limit):
                break

        return files[:limit] if limit else files

    def load_all_json(
        self, subfolder: str, limit: Optional[int] = None
    ) -> List[Any]:
        """Load every JSON document of a subfolder, newest first.

        Files that are not valid JSON are skipped.
        """
        documents = []
        for f in self.list_files(subfolder, limit=limit):
            if not f.get("name", "").endswith(".json"):
                continue
            try:
                documents.append(self._download_json(f["id"]))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning(f"Skipping unreadable file {f.get('name')}: {e}")
        return documents
