from __future__ import annotations
import json
from pathlib import Path
from typing import Dict

from .base import SinkPlugin, document_to_dict, rejection_to_dict


class FieldsSink(SinkPlugin):
    NAME = "fields"

    def write_outputs(self, out_dir: Path) -> Dict[str, int]:
        # one JSON object per flattened document, ready for a bulk indexer
        field_count = 0
        with (out_dir / "fields.jsonl").open("w", encoding="utf-8") as f:
            for doc in self.sorted_documents():
                field_count += len(doc.fields)
                f.write(json.dumps(document_to_dict(doc)) + "\n")

        rejected = [rejection_to_dict(r) for r in self.sorted_rejections()]
        (out_dir / "rejected.json").write_text(json.dumps(rejected, indent=2))

        return {
            "documents": len(self.documents),
            "rejected": len(self.rejections),
            "fields": field_count,
            "artifacts": 2,
        }


Fields = FieldsSink
