from __future__ import annotations

import logging
import os
import uuid

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

ALLOWED_CT = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


class StorageError(RuntimeError):
    pass


def _get_env(name: str) -> str:
    v = os.getenv(name, "").strip()
    if not v:
        raise StorageError(f"Missing env var: {name}")
    return v


def _s3_client():
    endpoint = _get_env("S3_ENDPOINT")
    access_key = _get_env("S3_ACCESS_KEY_ID")
    secret_key = _get_env("S3_SECRET_ACCESS_KEY")
    region = os.getenv("S3_REGION", "auto").strip() or "auto"

    return boto3.client(
        "s3",
        endpoint_url=endpoint,
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
        region_name=region,
        config=Config(signature_version="s3v4"),
    )


def bucket_name() -> str:
    return _get_env("S3_BUCKET")


def extension_for(content_type: str) -> str:
    ext = ALLOWED_CT.get((content_type or "").lower())
    if not ext:
        raise StorageError(f"Tipo de arquivo não suportado: {content_type}. Use jpeg/png/webp.")
    return ext


def make_image_key(prefix: str, filename: str) -> str:
    return f"{prefix.strip('/')}/{filename}"


def random_filename(ext: str) -> str:
    return f"{uuid.uuid4().hex}{ext}"


def public_url(key: str) -> str:
    public_base = os.getenv("S3_PUBLIC_BASE_URL", "").strip()
    if public_base:
        return f"{public_base.rstrip('/')}/{key}"
    # fallback: endpoint/bucket/key (nem sempre é a URL pública)
    return f"{_get_env('S3_ENDPOINT').rstrip('/')}/{bucket_name()}/{key}"


def upload_image(*, content: bytes, content_type: str, prefix: str = "products") -> str:
    """
    Envia a imagem para o bucket e retorna a URL pública.
    """
    if not content:
        raise StorageError("Arquivo de imagem vazio.")

    key = make_image_key(prefix, random_filename(extension_for(content_type)))

    s3 = _s3_client()
    try:
        s3.put_object(
            Bucket=bucket_name(),
            Key=key,
            Body=content,
            ContentType=content_type,
            ACL="public-read",
        )
    except (BotoCoreError, ClientError) as e:
        raise StorageError(f"Falha ao enviar imagem: {e}") from e
    logger.info("imagem enviada: %s (%d bytes)", key, len(content))
    return public_url(key)
