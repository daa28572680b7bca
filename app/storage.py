# app/storage.py
from app.settings import settings


class BlobStore:
    """Opaque byte store for uploaded audio, keyed by ``{generation_id}/{filename}``."""

    def upload(self, path: str, data: bytes) -> None:
        raise NotImplementedError

    def download(self, path: str) -> bytes:
        raise NotImplementedError


class AzureBlobStore(BlobStore):
    def __init__(self, connection_string: str, container_name: str):
        from azure.storage.blob import BlobServiceClient

        service = BlobServiceClient.from_connection_string(connection_string)
        self.container_client = service.get_container_client(container_name)

    def upload(self, path, data):
        self.container_client.get_blob_client(path).upload_blob(data, overwrite=True)

    def download(self, path):
        return self.container_client.get_blob_client(path).download_blob().readall()


def build_blob_store() -> BlobStore:
    if not settings.AZURE_STORAGE_CONNECTION_STRING or not settings.AZURE_CONTAINER_NAME:
        raise ValueError("AZURE_STORAGE_CONNECTION_STRING and AZURE_CONTAINER_NAME are not set.")
    return AzureBlobStore(settings.AZURE_STORAGE_CONNECTION_STRING, settings.AZURE_CONTAINER_NAME)
