from __future__ import annotations
import json
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.models import FlattenedDocument, FlattenerConfig, RejectedDocument


def document_to_dict(doc: FlattenedDocument) -> Dict[str, Any]:
    return {
        "file": str(doc.file_path),
        "line_num": doc.line_num,
        "fields": [{"name": f.name, "value": f.value} for f in doc.fields],
    }


def rejection_to_dict(rej: RejectedDocument) -> Dict[str, Any]:
    return {
        "file": str(rej.file_path),
        "line_num": rej.line_num,
        "reason": rej.reason,
        "error": rej.error,
    }


class SinkPlugin:
    """
    Base class for sink plugins. Subclasses set NAME and override
    write_outputs; scanners feed them every flattened and rejected document.
    Documents arrive from worker threads, so shared state is kept under
    self._lock.
    """
    NAME: str = "base"

    def __init__(self) -> None:
        self.config: Optional[FlattenerConfig] = None
        self.documents: List[FlattenedDocument] = []
        self.rejections: List[RejectedDocument] = []
        self._lock = threading.Lock()

    # Lifecycle hooks
    def begin(self, config: FlattenerConfig) -> None:
        self.config = config

    def end(self) -> None:
        pass

    def begin_file(self, path: Path) -> None:
        pass

    def end_file(self, path: Path) -> None:
        pass

    # Streaming API
    def process_document(self, doc: FlattenedDocument) -> None:
        with self._lock:
            self.documents.append(doc)

    def process_rejection(self, rej: RejectedDocument) -> None:
        with self._lock:
            self.rejections.append(rej)

    def sorted_documents(self) -> List[FlattenedDocument]:
        return sorted(self.documents, key=lambda d: (str(d.file_path), d.line_num))

    def sorted_rejections(self) -> List[RejectedDocument]:
        return sorted(self.rejections, key=lambda r: (str(r.file_path), r.line_num))

    def write_outputs(self, out_dir: Path) -> Dict[str, int]:
        # Default: write <name>.json with every document
        data = {
            "documents": [document_to_dict(d) for d in self.sorted_documents()],
            "rejected": [rejection_to_dict(r) for r in self.sorted_rejections()],
        }
        (out_dir / f"{self.NAME}.json").write_text(json.dumps(data, indent=2))
        return {"documents": len(self.documents), "rejected": len(self.rejections), "artifacts": 1}
