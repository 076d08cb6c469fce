from __future__ import annotations
import json
from collections import Counter, defaultdict
from pathlib import Path
from typing import Dict

from .base import SinkPlugin
from ..core.flattener import extract_key, extract_value
from ..core.models import FlattenedDocument


class TermsSink(SinkPlugin):
    """Per-path term statistics built from the keyed field."""

    NAME = "terms"
    # Settings
    TOP_VALUES = 5

    def __init__(self) -> None:
        super().__init__()
        self.terms: Dict[str, Counter] = defaultdict(Counter)

    def process_document(self, doc: FlattenedDocument) -> None:
        keyed_field = self.config.keyed_field_name if self.config else None
        with self._lock:
            for record in doc.fields:
                if record.name != keyed_field:
                    continue
                self.terms[extract_key(record.value)][extract_value(record.value)] += 1

    def write_outputs(self, out_dir: Path) -> Dict[str, int]:
        data = [
            {
                "key": key,
                "distinct_values": len(counts),
                "occurrences": sum(counts.values()),
                "top_values": [[v, c] for v, c in counts.most_common(self.TOP_VALUES)],
            }
            for key, counts in sorted(self.terms.items())
        ]
        (out_dir / "terms.json").write_text(json.dumps(data, indent=2))

        lines = [f"# {self.NAME.title()}", ""]
        for item in data:
            lines.append(f"- **key**: `{item['key']}`  ")
            lines.append(f"  **distinct values**: {item['distinct_values']}  ")
            lines.append(f"  **occurrences**: {item['occurrences']}  ")
            top = ", ".join(f"`{v}` ({c})" for v, c in item["top_values"])
            lines.append(f"  **top values**: {top}  ")
            lines.append("")
        (out_dir / "terms.md").write_text("\n".join(lines))

        return {"keys": len(data), "artifacts": 2}


Terms = TermsSink
