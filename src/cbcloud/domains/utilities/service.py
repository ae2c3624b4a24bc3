"""Content utilities: validation, formatting, analysis and batch transforms.

Everything here is a pure string transform; nothing touches the database.
"""

import math
import re
from typing import Callable, List, Optional, Tuple
from urllib.parse import urlsplit

from cbcloud.core.settings import settings
from cbcloud.domains.clipboard.models import EntryType

from .models import (
    BatchEntry,
    BatchOperation,
    BatchResult,
    ContentAnalysis,
    ContentSummary,
    ContentValidation,
    FormatContentResponse,
    FormatOptions,
    FormatSpec,
    GlobalLimits,
    SupportedFormatsResponse,
    ValidateContentResponse,
)

TEXT_WARNING_LENGTH = 5000

_WHITESPACE = re.compile(r"\s+")
_SENTENCE_START = re.compile(r"(^|\.\s+)([a-z])")
_TRAILING_SLASHES = re.compile(r"/+$")
_ENGLISH_WORDS = re.compile(r"\b(the|and|or|but|in|on|at|to|for|of|with|by)\b")
_IP_ADDRESS = re.compile(r"\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b")
_ISO_DATE = re.compile(r"\b\d{4}-\d{2}-\d{2}\b")


# Building blocks shared with clipboard metadata derivation


def words(content: str) -> List[str]:
    return content.split()


def normalize_line_endings(content: str) -> str:
    return content.replace("\r\n", "\n").replace("\r", "\n")


def detect_language(content: str) -> Optional[str]:
    """Very rough English detector based on common function words."""
    word_list = words(content)
    if not word_list:
        return None
    hits = _ENGLISH_WORDS.findall(content.lower())
    if len(hits) > len(word_list) * 0.1:
        return "English"
    return None


def parse_url(content: str) -> Optional[Tuple[str, str, str]]:
    """Return ``(scheme, host, path)`` for an absolute URL, else None."""
    try:
        parts = urlsplit(content.strip())
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc or " " in content.strip():
        return None
    return parts.scheme.lower(), parts.hostname or parts.netloc, parts.path or "/"


def parse_data_url(content: str) -> Optional[Tuple[str, int]]:
    """Return ``(mime_type, decoded_size_bytes)`` for a base64 data URL."""
    if not content.startswith("data:") or "," not in content:
        return None
    header, payload = content.split(",", 1)
    mime_type = header[5:].split(";", 1)[0] or "application/octet-stream"
    return mime_type, math.ceil(len(payload) * 3 / 4)


# Endpoint operations


def validate_content(content: str, entry_type: EntryType) -> ValidateContentResponse:
    validation = ContentValidation()

    if entry_type == EntryType.TEXT:
        if len(content) > settings.MAX_TEXT_LENGTH:
            validation.is_valid = False
            validation.errors.append(
                f"Text content exceeds maximum length of {settings.MAX_TEXT_LENGTH:,} characters"
            )
        elif len(content) > TEXT_WARNING_LENGTH:
            validation.warnings.append(
                "Text content is quite long, consider breaking it into smaller pieces"
            )
        if "@" in content and "." in content:
            validation.suggestions.append(
                'This looks like an email address - consider using "link" type'
            )
        if content.startswith(("http://", "https://")):
            validation.suggestions.append(
                'This looks like a URL - consider using "link" type'
            )

    if entry_type == EntryType.LINK:
        parsed = parse_url(content)
        if parsed is None:
            validation.is_valid = False
            validation.errors.append("Invalid URL format")
        elif parsed[0] != "https":
            validation.warnings.append("Consider using HTTPS for security")

    if entry_type in (EntryType.FILE, EntryType.IMAGE):
        data = parse_data_url(content)
        if data and data[1] > settings.MAX_UPLOAD_BYTES:
            validation.is_valid = False
            validation.errors.append(
                f"File size ({data[1] / 1024 / 1024:.2f}MB) exceeds maximum allowed "
                f"size of {settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB"
            )

    return ValidateContentResponse(
        validation=validation,
        content=ContentSummary(
            type=entry_type,
            length=len(content),
            estimated_size=len(content) if entry_type == EntryType.TEXT else None,
        ),
    )


def format_content(
    content: str, entry_type: EntryType, options: FormatOptions
) -> FormatContentResponse:
    formatted = content
    changes: List[str] = []

    if entry_type == EntryType.TEXT:
        if options.normalize_line_endings:
            normalized = normalize_line_endings(formatted)
            if normalized != formatted:
                changes.append("Normalized line endings")
            formatted = normalized
        if options.remove_extra_whitespace:
            collapsed = _WHITESPACE.sub(" ", formatted).strip()
            if collapsed != formatted:
                changes.append("Removed extra whitespace")
            formatted = collapsed
        if options.capitalize_sentences:
            capitalized = _SENTENCE_START.sub(
                lambda m: m.group(1) + m.group(2).upper(), formatted
            )
            if capitalized != formatted:
                changes.append("Capitalized sentence beginnings")
            formatted = capitalized

    if entry_type == EntryType.LINK:
        if not formatted.startswith(("http://", "https://")):
            formatted = "https://" + formatted
            changes.append("Added HTTPS protocol")
        if options.remove_trailing_slash:
            trimmed = _TRAILING_SLASHES.sub("", formatted)
            if trimmed != formatted:
                changes.append("Removed trailing slashes")
            formatted = trimmed

    return FormatContentResponse(
        original_content=content,
        formatted_content=formatted,
        changes=changes,
        format_options=options,
    )


def analyze_content(content: str, entry_type: EntryType) -> ContentAnalysis:
    analysis = ContentAnalysis(type=entry_type, length=len(content))

    if entry_type == EntryType.TEXT:
        word_list = words(content)
        analysis.metadata.update(
            word_count=len(word_list),
            character_count=len(content),
            line_count=content.count("\n") + 1,
        )
        language = detect_language(content)
        if language:
            analysis.metadata["likely_language"] = language

        if "@" in content and "." in content and " " in content:
            analysis.insights.append("Contains email-like content")
        if _IP_ADDRESS.search(content):
            analysis.insights.append("Contains IP address")
        if _ISO_DATE.search(content):
            analysis.insights.append("Contains date format")

        if len(word_list) > 100:
            analysis.suggestions.append(
                "Consider breaking long text into smaller, searchable pieces"
            )
        lowered = content.lower()
        if "password" in lowered or "secret" in lowered:
            analysis.suggestions.append("Consider marking this as sensitive content")

    if entry_type == EntryType.LINK:
        parsed = parse_url(content)
        if parsed is None:
            analysis.insights.append("Invalid URL format")
        else:
            scheme, host, path = parsed
            analysis.metadata.update(domain=host, protocol=f"{scheme}:", path=path)
            if scheme == "http":
                analysis.suggestions.append("Consider using HTTPS for security")

    if entry_type in (EntryType.IMAGE, EntryType.FILE):
        data = parse_data_url(content)
        if data:
            mime_type, size = data
            analysis.metadata.update(mime_type=mime_type, encoding="base64", size=size)
            if mime_type.startswith("image/"):
                analysis.insights.append("Base64 encoded image detected")

    return analysis


BATCH_OPERATIONS: dict[str, Tuple[Callable[[str], str], str]] = {
    "trim": (str.strip, "trimmed"),
    "lowercase": (str.lower, "converted to lowercase"),
    "uppercase": (str.upper, "converted to uppercase"),
    "removeExtraSpaces": (lambda s: _WHITESPACE.sub(" ", s), "removed extra spaces"),
    "normalizeLineEndings": (normalize_line_endings, "normalized line endings"),
}


def batch_process(
    entries: List[BatchEntry], operations: List[BatchOperation]
) -> List[BatchResult]:
    """Apply ``operations`` in order to each entry; unknown ones are reported."""
    results = []
    for entry in entries:
        result = BatchResult(id=entry.id, original=entry.content, processed=entry.content)
        for operation in operations:
            known = BATCH_OPERATIONS.get(operation.type)
            if known is None:
                result.errors.append(f"Unknown operation: {operation.type}")
                continue
            transform, label = known
            result.processed = transform(result.processed)
            result.operations.append(label)
        results.append(result)
    return results


def supported_formats() -> SupportedFormatsResponse:
    return SupportedFormatsResponse(
        formats={
            "text": FormatSpec(
                extensions=[".txt", ".md", ".json", ".xml", ".csv"],
                mime_types=[
                    "text/plain",
                    "text/markdown",
                    "application/json",
                    "text/xml",
                    "text/csv",
                ],
                max_size="10MB",
                features=["search", "format", "analyze", "batch-process"],
            ),
            "image": FormatSpec(
                extensions=[".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp"],
                mime_types=[
                    "image/jpeg",
                    "image/png",
                    "image/gif",
                    "image/bmp",
                    "image/webp",
                ],
                max_size="10MB",
                features=["preview", "resize", "compress"],
            ),
            "file": FormatSpec(
                extensions=[".pdf", ".doc", ".docx", ".xls", ".xlsx", ".zip", ".rar"],
                mime_types=[
                    "application/pdf",
                    "application/msword",
                    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
                ],
                max_size="50MB",
                features=["preview", "download", "metadata"],
            ),
            "link": FormatSpec(
                extensions=[".url", ".webloc"],
                mime_types=["text/uri-list", "application/x-url"],
                max_size="1KB",
                features=["validate", "preview", "archive"],
            ),
        },
        global_limits=GlobalLimits(
            max_entries_per_product=settings.MAX_ENTRIES_PER_PRODUCT,
            max_tags_per_entry=settings.MAX_TAGS_PER_ENTRY,
            max_shared_users=settings.MAX_SHARED_USERS,
        ),
    )
