"""Load CRM schemas from built-in templates or user files.

Templates are YAML files shipped next to this module. User schema files
may be JSON (as exported by the editor UI) or YAML.
"""

import json
import logging
from pathlib import Path

import yaml

from src.errors.domain import NotFoundError
from src.schema.models import CRMSchema

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"


def list_templates() -> list[str]:
    """Return the names of the built-in schema templates, sorted."""
    return sorted(p.stem for p in TEMPLATES_DIR.glob("*.yaml"))


def load_template(name: str) -> CRMSchema:
    """Load a built-in schema template.

    Each call parses the file again, so callers get an independent copy.

    Args:
        name: Template name without extension (e.g. "default").

    Returns:
        The parsed schema.

    Raises:
        NotFoundError: If no template with that name exists.
    """
    path = TEMPLATES_DIR / f"{name}.yaml"
    if not path.is_file():
        raise NotFoundError("Template", name)
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return CRMSchema.model_validate(data)


def load_schema_file(path: str | Path) -> CRMSchema:
    """Load a schema from a JSON or YAML file.

    Args:
        path: File to read. ``.json`` is parsed as JSON, anything else as YAML.

    Returns:
        The parsed schema.

    Raises:
        FileNotFoundError: If the file does not exist.
        pydantic.ValidationError: If the content does not describe a schema.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Schema file not found: {path}")

    logger.info("Loading schema from %s", path)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text) or {}

    # Editor exports wrap the schema: {"schema": {...}, "pageTitle": ...}
    if isinstance(data, dict) and "schema" in data and "databases" not in data:
        data = data["schema"]
    return CRMSchema.model_validate(data)
