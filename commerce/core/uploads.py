"""
Upload validation: MIME allow-lists, size limits, extension/MIME agreement,
file signatures (magic bytes) and Pillow decoding for raster images.
"""
import logging
import os
import re
import secrets
import time
from dataclasses import dataclass

from django.utils import timezone
from PIL import Image, UnidentifiedImageError

from .errors import AppError, ErrorCode

logger = logging.getLogger(__name__)

MB = 1024 * 1024

ALLOWED_MIME_TYPES = {
    'images': [
        'image/jpeg',
        'image/png',
        'image/gif',
        'image/webp',
        'image/svg+xml',
    ],
    'documents': [
        'application/pdf',
        'application/msword',
        'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
        'application/vnd.ms-excel',
        'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    ],
    'videos': [
        'video/mp4',
        'video/webm',
        'video/ogg',
    ],
}

FILE_SIZE_LIMITS = {
    'images': 10 * MB,
    'documents': 50 * MB,
    'videos': 500 * MB,
    'default': 10 * MB,
}

EXTENSIONS_BY_MIME = {
    'image/jpeg': ['jpg', 'jpeg'],
    'image/png': ['png'],
    'image/gif': ['gif'],
    'image/webp': ['webp'],
    'image/svg+xml': ['svg'],
    'application/pdf': ['pdf'],
    'application/msword': ['doc'],
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document': ['docx'],
    'application/vnd.ms-excel': ['xls'],
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet': ['xlsx'],
    'video/mp4': ['mp4'],
    'video/webm': ['webm'],
    'video/ogg': ['ogg', 'ogv'],
}

# (offset, bytes) pairs; any match is accepted
MAGIC_SIGNATURES = {
    'image/jpeg': [(0, b'\xff\xd8\xff')],
    'image/png': [(0, b'\x89PNG\r\n\x1a\n')],
    'image/gif': [(0, b'GIF87a'), (0, b'GIF89a')],
    'image/webp': [(0, b'RIFF')],
    'application/pdf': [(0, b'%PDF')],
    'video/mp4': [(4, b'ftyp')],
}

# Enough for every signature above
SIGNATURE_READ_SIZE = 4096

RASTER_IMAGE_TYPES = {'image/jpeg', 'image/png', 'image/gif', 'image/webp'}

_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_WHITESPACE = re.compile(r'\s+')
_UNDERSCORES = re.compile(r'_+')


@dataclass
class ValidatedFile:
    name: str
    size: int
    mime_type: str
    extension: str
    width: int = None
    height: int = None


def get_valid_extensions(mime_type):
    return EXTENSIONS_BY_MIME.get(mime_type, [])


def validate_magic_bytes(buffer, mime_type):
    """Check the file signature. Types without a known signature pass."""
    if len(buffer) < 8:
        return False
    signatures = MAGIC_SIGNATURES.get(mime_type)
    if not signatures:
        return True
    if mime_type == 'image/webp' and buffer[:4] == b'RIFF':
        return buffer[8:12] == b'WEBP' if len(buffer) >= 12 else True
    return any(buffer[offset:offset + len(signature)] == signature for offset, signature in signatures)


def sanitize_file_name(name):
    base_name = re.split(r'[/\\]', name or '')[-1]
    sanitized = _UNSAFE_CHARS.sub('_', base_name)
    sanitized = _WHITESPACE.sub('_', sanitized)
    sanitized = _UNDERSCORES.sub('_', sanitized).strip()
    if len(sanitized) > 100:
        stem, dot, ext = sanitized.rpartition('.')
        if dot and len(ext) < 10:
            sanitized = f"{stem[:90]}.{ext}"
        else:
            sanitized = sanitized[:100]
    return sanitized or 'file'


def generate_unique_file_name(original_name):
    stem, dot, ext = sanitize_file_name(original_name).rpartition('.')
    if not dot:
        stem, ext = ext, ''
    timestamp = int(time.time() * 1000)
    suffix = secrets.token_hex(3)
    unique = f"{stem}_{timestamp}_{suffix}"
    return f"{unique}.{ext.lower()}" if ext else unique


def upload_folder(category='general', when=None):
    when = when or timezone.now()
    return f"uploads/{category}/{when.year}/{when.month:02d}"


def category_for_mime(mime_type):
    for category, types in ALLOWED_MIME_TYPES.items():
        if mime_type in types:
            return category
    return None


def _inspect_image(uploaded_file):
    """Decode with Pillow straight from the upload; returns (width, height) or raises AppError"""
    try:
        uploaded_file.seek(0)
        with Image.open(uploaded_file) as image:
            image.verify()
        # verify() leaves the decoder unusable, reopen for the size
        uploaded_file.seek(0)
        with Image.open(uploaded_file) as image:
            return image.size
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        logger.info(f"Rejected undecodable image upload: {e}")
        raise AppError(
            ErrorCode.UPLOAD_INVALID_FILE,
            'File content does not match declared type',
            [{'field': 'file', 'constraint': 'Image could not be decoded'}],
        )


def validate_upload(uploaded_file, category='images', allowed_types=None, max_size=None):
    """
    Validate an UploadedFile and return its ValidatedFile metadata.

    Only the first few KB are read for the signature check and Pillow decodes
    raster images from the file object, so large uploads stay on disk.

    The check order is MIME type, size, extension, then signature.
    """
    allowed = allowed_types or ALLOWED_MIME_TYPES.get(category, [])
    limit = max_size or FILE_SIZE_LIMITS.get(category, FILE_SIZE_LIMITS['default'])
    mime_type = (getattr(uploaded_file, 'content_type', '') or '').lower()

    if mime_type not in allowed:
        raise AppError(
            ErrorCode.UPLOAD_INVALID_FILE,
            f"File type {mime_type or 'unknown'} is not allowed",
            [{'field': 'file', 'constraint': f"Allowed types: {', '.join(allowed)}"}],
        )

    if uploaded_file.size > limit:
        raise AppError(
            ErrorCode.UPLOAD_FILE_TOO_LARGE,
            'File size exceeds limit',
            [{'field': 'file', 'constraint': f"Maximum size: {round(limit / MB)} MB"}],
        )

    extension = os.path.splitext(uploaded_file.name or '')[1].lstrip('.').lower()
    valid_extensions = get_valid_extensions(mime_type)
    if valid_extensions and extension not in valid_extensions:
        raise AppError(
            ErrorCode.UPLOAD_INVALID_FILE,
            'File extension does not match type',
            [{'field': 'file', 'constraint': f"Expected: {', '.join(valid_extensions)}"}],
        )

    uploaded_file.seek(0)
    header = uploaded_file.read(SIGNATURE_READ_SIZE)
    uploaded_file.seek(0)
    if not validate_magic_bytes(header, mime_type):
        raise AppError(
            ErrorCode.UPLOAD_INVALID_FILE,
            'File content does not match declared type',
            [{'field': 'file', 'constraint': 'File may be corrupted or spoofed'}],
        )

    width = height = None
    if mime_type in RASTER_IMAGE_TYPES:
        width, height = _inspect_image(uploaded_file)
        uploaded_file.seek(0)

    return ValidatedFile(
        name=sanitize_file_name(uploaded_file.name),
        size=uploaded_file.size,
        mime_type=mime_type,
        extension=extension,
        width=width,
        height=height,
    )
