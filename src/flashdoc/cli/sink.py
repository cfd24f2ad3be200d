"""JSON page sink: writes one document per page plus the navigation tree."""

import json
import shutil
from pathlib import Path
from typing import Iterable

from ..logging_config import get_logger
from ..render import NavItem, Page

logger = get_logger(__name__)


class JsonPageSink:
    """Writes ``<output_dir>/<page url>.json`` and ``<output_dir>/nav.json``."""

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir

    def path_for(self, page: Page) -> Path:
        *dirs, name = page.url.split("/")
        return self.output_dir.joinpath(*dirs) / f"{name}.json"

    def write(self, pages: Iterable[Page], nav: NavItem, clean: bool = False) -> int:
        """Write every page; returns the number of page files written."""
        if clean and self.output_dir.exists():
            shutil.rmtree(self.output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        count = 0
        for page in pages:
            target = self.path_for(page)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(json.dumps(page.to_json(), indent=2, sort_keys=True), encoding="utf-8")
            count += 1

        nav_path = self.output_dir / "nav.json"
        nav_path.write_text(json.dumps(nav.to_json(), indent=2), encoding="utf-8")
        logger.info(f"Wrote {count} pages to {self.output_dir}")
        return count
