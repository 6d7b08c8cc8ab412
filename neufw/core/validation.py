import logging
import os
import re
from pathlib import Path
from typing import Optional, Union


logger = logging.getLogger(__name__)

TEMPLATE_EXTENSION = ".html"
SECTION_PATTERN = re.compile(r'^[a-z0-9\-]{1,50}$', re.IGNORECASE)
PAGE_PATTERN = re.compile(r'^[a-z0-9\-]{1,75}$', re.IGNORECASE)


def _readable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.R_OK)


def validate_route(page: Optional[str], section: Optional[str], templates_directory: Union[str, Path]) -> Optional[str]:
    """Resolve a page request to a template path relative to the template root.

    Tries ``<section>/<page>.html`` first, then ``<page>.html``. Returns None
    when neither name is acceptable or no such template exists.
    """
    if not page or not PAGE_PATTERN.match(page):
        return None

    root = Path(templates_directory)
    if section and SECTION_PATTERN.match(section) and (root / section).is_dir():
        route = f"{section}/{page}{TEMPLATE_EXTENSION}"
        if _readable(root / route):
            return route

    route = f"{page}{TEMPLATE_EXTENSION}"
    if _readable(root / route):
        return route

    logger.info(f"No template found for section={section!r} page={page!r}")
    return None
