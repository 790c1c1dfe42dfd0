from __future__ import annotations

import json
import uuid
import logging
from pathlib import Path
from typing import Optional

from badgeforge.core.state import TEMPLATES_PATH
from badgeforge.canvas.errors import DuplicateTemplateName, TemplateValidationError
from badgeforge.canvas.template import Template, validate_document

logger = logging.getLogger(__name__)


def _name_key(name: str) -> str:
    return " ".join(str(name or "").split()).casefold()


class TemplateStore:
    """Templates on disk, one ``<id>.json`` document each."""

    def __init__(self, root: str | Path = TEMPLATES_PATH) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, template_id: str) -> Path:
        return self.root / f"{template_id}.json"

    def _read(self, path: Path) -> dict:
        return json.loads(path.read_text(encoding="utf-8"))

    def summaries(self) -> list[dict]:
        """Summaries ``{"id", "name"}`` sorted by name; unreadable files are skipped."""
        out = []
        for p in sorted(self.root.glob("*.json")):
            try:
                doc = self._read(p)
            except (OSError, ValueError):
                logger.exception("Failed to read template %s", p)
                continue
            out.append({"id": doc.get("id", p.stem), "name": doc.get("name", p.stem)})
        return sorted(out, key=lambda d: _name_key(d["name"]))

    def find_by_name(self, name: str) -> Optional[str]:
        key = _name_key(name)
        for summary in self.summaries():
            if _name_key(summary["name"]) == key:
                return summary["id"]
        return None

    def exists(self, template_id: str) -> bool:
        return self._path(template_id).exists()

    def load(self, template_id: str) -> Template:
        path = self._path(template_id)
        if not path.exists():
            raise KeyError(template_id)
        doc = self._read(path)
        doc.setdefault("id", template_id)
        return Template.from_document(doc)

    def save(self, template: Template) -> Template:
        """Write ``template``; assigns an id on first save.

        Raises DuplicateTemplateName when another template already uses the
        name (case and surrounding space ignored), and TemplateValidationError
        for an invalid document. Nothing is written in either case.
        """
        name = str(template.name or "").strip()
        if not name:
            raise TemplateValidationError(["Template name is required"])
        other = self.find_by_name(name)
        if other is not None and other != template.id:
            raise DuplicateTemplateName(name, other)

        doc = template.to_document()
        doc["name"] = name
        violations = validate_document(doc)
        if violations:
            raise TemplateValidationError(violations)

        if template.id is None:
            template.id = uuid.uuid4().hex
        template.name = name
        doc["id"] = template.id
        tmp = self._path(template.id).with_suffix(".tmp")
        tmp.write_text(json.dumps(doc, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self._path(template.id))
        logger.info("Saved template %s (%s)", template.name, template.id)
        return template

    def delete(self, template_id: str) -> bool:
        path = self._path(template_id)
        if not path.exists():
            return False
        path.unlink()
        return True
