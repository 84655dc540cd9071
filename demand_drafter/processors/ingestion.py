"""
Exhibit ingestion

Decides, for one processing request, which previously processed exhibits are
kept and which uploads still need extraction. The caller owns session state
and sends it back on every request as `existingExhibits` / `keepFiles`.
"""

import json
import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional

from ..errors import InputError
from ..models import Exhibit, now_iso
from ..utils.file_parser import UploadedFile, allowed_file

logger = logging.getLogger(__name__)


@dataclass
class IngestionPlan:
    retained: List[Exhibit]
    new_files: List[UploadedFile]
    skipped_files: List[str] = field(default_factory=list)
    reprocess_all: bool = False


def parse_bool(value: Optional[str]) -> bool:
    return str(value or '').strip().lower() in ('true', '1', 'yes', 'on')


def parse_existing_exhibits(raw: Optional[str]) -> List[Exhibit]:
    """Decode the `existingExhibits` form field."""
    if raw is None or not raw.strip():
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InputError('Invalid existingExhibits payload', details=str(e)) from e
    if not isinstance(data, list):
        raise InputError('Invalid existingExhibits payload', details='Expected a JSON array')

    exhibits = []
    for item in data:
        if not isinstance(item, dict) or not str(item.get('fileName', '')).strip():
            logger.warning(f"Ignoring existing exhibit without a fileName: {item!r:.100}")
            continue
        exhibits.append(Exhibit.from_dict(item))
    return exhibits


def parse_keep_files(raw: Optional[str]) -> Optional[List[str]]:
    """Decode the `keepFiles` form field. None means the field was not sent."""
    if raw is None:
        return None
    if not raw.strip():
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InputError('Invalid keepFiles payload', details=str(e)) from e
    if not isinstance(data, list):
        raise InputError('Invalid keepFiles payload', details='Expected a JSON array')
    return [str(name) for name in data if isinstance(name, str)]


def validate_uploads(uploads: List[UploadedFile]):
    for upload in uploads:
        if not upload.file_name:
            raise InputError('No file selected')
        if not allowed_file(upload.file_name):
            raise InputError(
                'File type not allowed. Upload PDF files only',
                details=upload.file_name,
            )


def plan_ingestion(
    uploads: List[UploadedFile],
    existing: List[Exhibit],
    keep_files: Optional[List[str]] = None,
    reprocess_all: bool = False,
) -> IngestionPlan:
    """
    Split a request into retained exhibits and new files to extract.

    Args:
        uploads: Files uploaded with this request.
        existing: Exhibits from earlier passes, as sent back by the caller.
        keep_files: Filenames the caller still wants. None keeps everything.
        reprocess_all: Re-run case analysis over `existing` without extracting.

    Returns:
        IngestionPlan. Filename is the only dedup key.
    """
    if reprocess_all:
        if not existing:
            raise InputError('No exhibits to reprocess')
        stamp = now_iso()
        retained = [replace(e, reprocessed=True, reprocessed_at=stamp) for e in existing]
        return IngestionPlan(retained=retained, new_files=[], reprocess_all=True)

    validate_uploads(uploads)

    if keep_files is None:
        retained = list(existing)
    else:
        keep = set(keep_files)
        retained = [e for e in existing if e.file_name in keep]
        dropped = len(existing) - len(retained)
        if dropped:
            logger.info(f"Dropped {dropped} exhibit(s) not listed in keepFiles")

    seen = {e.file_name for e in retained}
    new_files, skipped = [], []
    for upload in uploads:
        if upload.file_name in seen:
            skipped.append(upload.file_name)
            continue
        seen.add(upload.file_name)
        new_files.append(upload)

    if skipped:
        logger.info(f"Skipping already processed file(s): {', '.join(skipped)}")

    if not new_files and not retained:
        raise InputError('No PDF files provided')

    return IngestionPlan(retained=retained, new_files=new_files, skipped_files=skipped)
