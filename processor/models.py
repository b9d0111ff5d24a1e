"""Data models for event schema processing."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

# One CSV data row, keyed by trimmed header name
RawRecord = Dict[str, str]

# Page URL -> records referencing that page, in file order
UrlIndex = Dict[str, List[RawRecord]]


@dataclass
class LoadResult:
    """Records read from a CSV file."""
    records: List[RawRecord] = field(default_factory=list)
    skipped_rows: int = 0
    source_available: bool = True


@dataclass
class Settings:
    """Persisted injector settings."""
    enabled: bool = True
    csv_file_path: Optional[str] = None


@dataclass
class UploadResult:
    """Result of an upload operation."""
    success: bool
    message: str
    csv_file_path: Optional[str] = None
