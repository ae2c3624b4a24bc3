from typing import Any, Optional

from cbcloud.domains.utilities.service import (
    detect_language,
    parse_data_url,
    parse_url,
    validate_content,
    words,
)
from cbcloud.shared.exceptions import ValidationError

from .models import METADATA_TYPES, EntryMetadata, EntryType, MetadataInput


def check_content(content: str, entry_type: EntryType) -> None:
    """Reject content the validate-content utility would flag as invalid."""
    result = validate_content(content, entry_type).validation
    if not result.is_valid:
        raise ValidationError("; ".join(result.errors))


def build_metadata(
    content: str,
    entry_type: EntryType,
    supplied: Optional[MetadataInput] = None,
    previous: Optional[EntryMetadata] = None,
) -> EntryMetadata:
    """
    Build the metadata variant for ``entry_type``.

    Fields carry over from ``previous`` when the type is unchanged, are
    overridden by ``supplied``, and derived fields are recomputed from
    ``content`` last.
    """
    if supplied is not None and supplied.type is not None and supplied.type != entry_type:
        raise ValidationError("Metadata type must match the entry type")

    model = METADATA_TYPES[entry_type]
    values: dict[str, Any] = {}
    if previous is not None and previous.type == entry_type.value:
        values.update(previous.model_dump(exclude_none=True))
    if supplied is not None:
        values.update(supplied.model_dump(exclude_none=True, exclude={"type"}))
    fields = {k: v for k, v in values.items() if k in model.model_fields}
    fields["type"] = entry_type.value

    if entry_type == EntryType.TEXT:
        fields["word_count"] = len(words(content))
        fields["character_count"] = len(content)
        if "language" not in fields:
            fields["language"] = detect_language(content)
    elif entry_type == EntryType.LINK:
        parsed = parse_url(content)
        fields["url"] = content.strip()
        fields["domain"] = parsed[1] if parsed else None
    else:
        data = parse_data_url(content)
        if data:
            mime_type, size = data
            if entry_type == EntryType.IMAGE:
                fields.setdefault("format", mime_type.split("/", 1)[-1])
                fields["size"] = size
            else:
                fields["mime_type"] = mime_type
                fields["file_size"] = size

    return model(**fields)
