"""
Archive record model

ConvertedDocument is one saved revision of a converted PDF. Records are
immutable once written; editing a document saves a new revision with the
same base_id.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_utc_iso(s: str) -> Optional[datetime]:
    try:
        if not s:
            return None
        txt = str(s).strip()
        if txt.endswith("Z"):
            txt = txt[:-1] + "+00:00"
        dt = datetime.fromisoformat(txt)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except ValueError:
        return None


@dataclass
class ConvertedDocument:
    original_filename: str
    converted_text: str
    keywords: List[str] = field(default_factory=list)
    summary: str = ""
    id: str = ""
    base_id: str = ""
    converted_at: str = ""
    revision: int = 0
    pdf_path: Optional[str] = None
    pdf_size: Optional[int] = None

    @property
    def file_size(self) -> int:
        """Byte length of the converted text"""
        return len((self.converted_text or "").encode("utf-8"))

    def to_dict(self) -> Dict[str, Any]:
        """Full record, as stored on disk and returned by the API"""
        result = {
            "id": self.id,
            "baseId": self.base_id,
            "originalFilename": self.original_filename,
            "convertedText": self.converted_text,
            "keywords": list(self.keywords),
            "summary": self.summary,
            "convertedAt": self.converted_at,
            "fileSize": self.file_size,
            "revision": self.revision,
        }
        if self.pdf_path:
            result["pdfPath"] = self.pdf_path
        if self.pdf_size:
            result["pdfSize"] = self.pdf_size
        return result

    def summary_dict(self) -> Dict[str, Any]:
        """Index entry: metadata only, no text bodies"""
        return {
            "id": self.id,
            "baseId": self.base_id,
            "originalFilename": self.original_filename,
            "convertedAt": self.converted_at,
            "fileSize": self.file_size,
            "revision": self.revision,
            "hasKeywords": len(self.keywords) > 0,
            "hasSummary": len(self.summary) > 0,
            "hasPdf": bool(self.pdf_path),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConvertedDocument":
        keywords = data.get("keywords") or []
        return cls(
            id=str(data.get("id") or ""),
            base_id=str(data.get("baseId") or ""),
            original_filename=str(data.get("originalFilename") or ""),
            converted_text=str(data.get("convertedText") or ""),
            keywords=[str(k) for k in keywords] if isinstance(keywords, list) else [],
            summary=str(data.get("summary") or ""),
            converted_at=str(data.get("convertedAt") or ""),
            revision=int(data.get("revision") or 0),
            pdf_path=data.get("pdfPath") or None,
            pdf_size=int(data["pdfSize"]) if data.get("pdfSize") else None,
        )
