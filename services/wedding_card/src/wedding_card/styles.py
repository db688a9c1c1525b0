"""Style catalog: ordered transformation prompts addressed by index."""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional

import yaml
from pydantic import BaseModel

from common.config import settings
from common.logging import get_logger

from .errors import ValidationError

LOGGER = get_logger(__name__)

PACKAGED_CATALOG = Path(__file__).parent / "image_styles.yaml"


class StylePrompt(BaseModel):
    name: str = ""
    text: str = ""
    default: bool = False


class StyleCatalog:
    """Ordered prompts; a style index is a position in this list."""

    def __init__(self, styles: List[StylePrompt]) -> None:
        self.styles = styles

    def __len__(self) -> int:
        return len(self.styles)

    def __iter__(self):
        return iter(self.styles)

    def parse_index(self, raw: Any) -> int:
        """Turn a form value into a valid style index."""
        try:
            index = int(str(raw).strip())
        except (TypeError, ValueError):
            raise ValidationError("Invalid image style selected") from None
        if index < 0 or index >= len(self.styles):
            raise ValidationError("Invalid image style selected")
        return index

    def prompt_for(self, index: int) -> str:
        """Prompt text for `index`, falling back to the default entry, then the first."""
        if not self.styles:
            raise LookupError("Image style prompts not configured")
        if 0 <= index < len(self.styles) and self.styles[index].text:
            return self.styles[index].text
        for style in self.styles:
            if style.default and style.text:
                return style.text
        return self.styles[0].text


def load_style_catalog(path: Optional[Path] = None) -> StyleCatalog:
    """Load the catalog from YAML (a top-level list or a `styles:` list)."""

    if path is None:
        path = Path(settings.style_catalog_path) if settings.style_catalog_path else PACKAGED_CATALOG
    path = Path(path)

    with open(path, "r") as f:
        raw = yaml.safe_load(f) or []
    if isinstance(raw, dict):
        raw = raw.get("styles", [])

    styles = [StylePrompt.model_validate(item) for item in raw]
    LOGGER.info(f"Loaded {len(styles)} image styles from {path}")
    return StyleCatalog(styles)


__all__ = ["StylePrompt", "StyleCatalog", "load_style_catalog", "PACKAGED_CATALOG"]
