"""
Persona and product lookups backed by JSON files in the data directory.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from loguru import logger

from iogmcp.config import DataConfig
from iogmcp.exceptions import InternalError, InvalidInputError, NotFoundError

__all__ = ["DataLookup"]


class DataLookup:
    """Reads ``personas.json``, ``products.json`` and per-product markdown files."""

    def __init__(self, config: Optional[DataConfig] = None):
        self.config = config or DataConfig()
        self.data_dir = self.config.get_data_dir()

    @property
    def personas_path(self) -> Path:
        return self.data_dir / self.config.personas_file

    @property
    def products_path(self) -> Path:
        return self.data_dir / self.config.products_file

    @property
    def details_dir(self) -> Path:
        return self.data_dir / self.config.products_details_dir

    def _load_json(self, path: Path) -> Dict[str, Any]:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise InternalError(f"Data file not found: {path.name}", cause=e)
        except json.JSONDecodeError as e:
            raise InternalError(f"Data file {path.name} is not valid JSON: {e}", cause=e)

        if not isinstance(data, dict):
            raise InternalError(f"Data file {path.name} must contain a JSON object")
        return data

    @staticmethod
    def _find(entries: Dict[str, Any], name: str) -> Optional[Tuple[str, Any]]:
        wanted = name.strip().lower()
        for key, value in entries.items():
            if key.lower() == wanted:
                return key, value
        return None

    @staticmethod
    def _wants_all(name: Any) -> bool:
        if name is None:
            return True
        if not isinstance(name, str):
            raise InvalidInputError("name must be a string", field="name", value=name)
        return not name.strip() or name.strip().lower() == "all"

    def get_persona(self, name: Optional[str] = None) -> Dict[str, Any]:
        """One persona as ``{"persona": {key: data}}``, or ``{"personas": {...}}`` for all."""
        personas = self._load_json(self.personas_path)
        if self._wants_all(name):
            return {"personas": personas}

        found = self._find(personas, name)
        if found is None:
            raise NotFoundError(f"Persona '{name}' not found", identifier=name)
        key, persona = found
        return {"persona": {key: persona}}

    def get_product(self, name: Optional[str] = None, detailed: bool = False) -> Dict[str, Any]:
        """
        One product as ``{"product": {key: data}}``, or ``{"products": {...}}`` for all.

        With ``detailed`` the product's markdown file (``<Name>.md``) is added as
        ``details`` when it exists.
        """
        products = self._load_json(self.products_path)
        if self._wants_all(name):
            return {"products": products}

        found = self._find(products, name)
        if found is None:
            raise NotFoundError(f"Product '{name}' not found", identifier=name)
        key, product = found
        result: Dict[str, Any] = {"product": {key: product}}

        if detailed:
            details = self.get_product_details(key)
            if details is not None:
                result["details"] = details
        return result

    def get_product_details(self, name: str) -> Optional[str]:
        """Markdown detail text for a product, or None when there is no file."""
        name = name.strip()
        md_path = self.details_dir / f"{name[:1].upper()}{name[1:]}.md"
        if not md_path.is_file():
            logger.debug(f"No detail file for product '{name}' at {md_path}")
            return None
        return md_path.read_text(encoding='utf-8')
