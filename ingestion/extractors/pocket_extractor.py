"""
Pocket export extractor.

Reads the CSV export downloaded from getpocket.com/export:

    title,url,time_added,tags,status
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd
from pydantic import BaseModel, Field

from core.exceptions import ContentParseError, NotFoundError

logger = logging.getLogger(__name__)

POCKET_EXPORT_COLUMNS = ["title", "url", "time_added", "tags", "status"]


class PocketExportRow(BaseModel):
    url: str
    title: str = ""
    time_added: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)
    status: str = "unread"


class PocketExportExtractor:
    """Extract saved items from a Pocket CSV export."""

    def __init__(self, file_path: Union[str, Path]):
        self.file_path = Path(file_path)

    def _read(self) -> pd.DataFrame:
        df = pd.read_csv(self.file_path, dtype=str, keep_default_na=False)
        # Normalize column names (strip whitespace, lowercase)
        df.columns = df.columns.str.strip().str.lower().str.replace(" ", "_")
        return df

    async def fetch_rows(self) -> List[PocketExportRow]:
        """
        Raises:
            NotFoundError: If the export file does not exist
            ContentParseError: If the file is not a Pocket CSV export
        """
        if not self.file_path.exists():
            raise NotFoundError(
                f"Pocket export not found: {self.file_path}",
                context={"entity": "pocket_export", "entity_id": str(self.file_path)}
            )

        logger.info(f"Reading Pocket export from {self.file_path}")
        try:
            df = await asyncio.to_thread(self._read)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise ContentParseError(
                "Could not read Pocket export CSV",
                context={"content_type": "text/csv", "path": str(self.file_path)},
                original_exception=e
            )

        if "url" not in df.columns:
            raise ContentParseError(
                "Pocket export is missing the url column",
                context={"content_type": "text/csv", "columns": list(df.columns)}
            )

        rows = [self._parse_record(record) for record in df.to_dict(orient="records")]
        logger.info(f"Read {len(rows)} rows from Pocket export")
        return rows

    @staticmethod
    def _parse_record(record: Dict[str, Any]) -> PocketExportRow:
        tags = [t.strip() for t in str(record.get("tags") or "").split("|") if t.strip()]
        return PocketExportRow(
            url=str(record.get("url") or "").strip(),
            title=str(record.get("title") or "").strip(),
            time_added=PocketExportExtractor._parse_time_added(record.get("time_added")),
            tags=tags,
            status=str(record.get("status") or "unread").strip() or "unread",
        )

    @staticmethod
    def _parse_time_added(value: Any) -> Optional[datetime]:
        """Unix seconds to naive UTC"""
        if value is None or value == "":
            return None
        try:
            return datetime.fromtimestamp(int(float(value)), tz=timezone.utc).replace(tzinfo=None)
        except (ValueError, TypeError, OverflowError, OSError):
            return None
