# -*- coding: utf-8 -*-

import os
import json
import base64
from google.cloud import storage

# =========================================================
# LAZY CLIENT
# =========================================================
_client = None


def _get_client():
    global _client
    if _client is not None:
        return _client

    creds_b64 = os.getenv("GOOGLE_APPLICATION_CREDENTIALS_JSON")
    if creds_b64:
        creds = json.loads(base64.b64decode(creds_b64))
        _client = storage.Client.from_service_account_info(creds)
    else:
        _client = storage.Client()

    return _client


# =========================================================
# UPLOAD LOCAL FILE (ARCHIVE COPY)
# =========================================================
def upload_local_file(
    *,
    bucket_name: str,
    local_path: str,
    destination_path: str,
    content_type: str = "audio/mpeg",
) -> dict:
    if not bucket_name:
        raise RuntimeError("GCS bucket name not configured")

    client = _get_client()
    bucket = client.bucket(bucket_name)
    blob = bucket.blob(destination_path)

    blob.upload_from_filename(local_path, content_type=content_type)

    return {
        "bucket": bucket_name,
        "blob": destination_path,
        "gcs_uri": f"gs://{bucket_name}/{destination_path}",
    }
