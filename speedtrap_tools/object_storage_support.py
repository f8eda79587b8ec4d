#
# object_storage_support.py: class to handle object storage manipulations
#
# Copyright SpeedTrap Project 2025
# All rights reserved
#
# Implements class for uploading record snapshots to cloud object storage
#


import io, os, shutil
from dataclasses import dataclass
from .environment import import_optional_package
from . import environment as env


@dataclass
class ObjectStorageConfig:
    """
    Object storage configuration dataclass
    """

    endpoint: str  # The object storage endpoint URL or local directory
    access_key: str  # The access key for the cloud account
    secret_key: str  # The secret key for the cloud account
    bucket: str  # The name of the bucket to manage
    secure: bool = True  # Use HTTPS to access the endpoint

    @staticmethod
    def from_env() -> "ObjectStorageConfig":
        """
        Construct configuration from S3_HOST, S3_KEY, S3_SECRET, and S3_BUCKET environment variables
        """
        return ObjectStorageConfig(**env.get_storage_settings())


class _LocalMinio:
    """
    LocalMinio class for simulating Minio object storage operations on the local filesystem
    """

    def __init__(self, base_dir):
        """Constructor
        Set the base directory for all buckets and create it if it doesn't exist
        """
        self.base_dir = os.path.abspath(base_dir)
        os.makedirs(self.base_dir, exist_ok=True)

    def _bucket_path(self, bucket_name):
        bucket_path = os.path.join(self.base_dir, bucket_name)
        if not os.path.isdir(bucket_path):
            raise FileNotFoundError(f"Bucket '{bucket_name}' does not exist.")
        return bucket_path

    def bucket_exists(self, bucket_name):
        """Check if a directory for the bucket exists"""
        return os.path.isdir(os.path.join(self.base_dir, bucket_name))

    def make_bucket(self, bucket_name):
        """Create a directory for the bucket"""
        os.makedirs(os.path.join(self.base_dir, bucket_name), exist_ok=True)

    def put_object(
        self,
        bucket_name,
        object_name,
        data,
        length,
        content_type="application/octet-stream",
    ):
        """Write data stream into the specified bucket and object path"""
        dest_path = os.path.join(self._bucket_path(bucket_name), object_name)
        os.makedirs(os.path.dirname(dest_path), exist_ok=True)
        with open(dest_path, "wb") as f:
            shutil.copyfileobj(data, f)


class ObjectStorage:

    def __init__(self, config: ObjectStorageConfig):
        """
        Constructor

        Args:
            config: ObjectStorageConfig object containing object storage configuration;
                when endpoint is an existing local directory, buckets are emulated as its subdirectories
        """

        self._config = config

        if os.path.exists(config.endpoint):
            self._client = _LocalMinio(config.endpoint)
        else:
            minio = import_optional_package("minio", extra="storage")

            self._client = minio.Minio(
                self._config.endpoint,
                access_key=self._config.access_key,
                secret_key=self._config.secret_key,
                secure=self._config.secure,
            )

    def ensure_bucket_exists(self):
        """
        Ensure the bucket exists in cloud object storage
        """

        try:
            if not self._client.bucket_exists(self._config.bucket):
                self._client.make_bucket(self._config.bucket)
        except Exception as e:
            raise RuntimeError(
                f"Error occurred when ensuring bucket '{self._config.bucket}' exists: {e}"
            ) from e

    def upload_bytes_to_object_storage(
        self,
        data: bytes,
        object_name: str,
        content_type: str = "application/octet-stream",
    ):
        """
        Upload in-memory data to cloud object storage bucket.

        Args:
            data: The data to upload
            object_name: The name of the object (path within the bucket)
            content_type: MIME type of the data
        """

        try:
            self._client.put_object(
                self._config.bucket,
                object_name,
                io.BytesIO(data),
                len(data),
                content_type=content_type,
            )
        except Exception as e:
            raise RuntimeError(
                f"Error occurred when uploading data to '{self._config.bucket}/{object_name}': {e}"
            ) from e

