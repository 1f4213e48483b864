"""Render Jinja2 pages that link to the compiled artifacts.

Fingerprinting makes artifact filenames dynamic, so templates ask for them
instead of hard-coding them::

    <script src="{{ script_artifact_name() }}"></script>
    <link rel="stylesheet" href="{{ style_artifact_name() }}">
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .scanner import is_backup_name

if TYPE_CHECKING:
    from .coordinator import Orchestrator

logger = logging.getLogger(__name__)


def load_env(template_dirs: Iterable[Path], orchestrator: Orchestrator) -> Environment:
    env = Environment(
        loader=FileSystemLoader([str(path) for path in template_dirs]),
        autoescape=select_autoescape(["html", "xml"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.globals["script_artifact_name"] = orchestrator.script_artifact_name
    env.globals["style_artifact_name"] = orchestrator.style_artifact_name
    return env


def discover_pages(pages_dir: Path) -> list[Path]:
    if not pages_dir.exists():
        raise FileNotFoundError(f"Missing pages directory: {pages_dir}")
    return sorted(
        page
        for page in pages_dir.rglob("*.html")
        if not any(is_backup_name(part) for part in page.relative_to(pages_dir).parts)
    )


def page_slug(relative_path: Path) -> str:
    # Nested pages get slugs like "blog-post".
    return "-".join(relative_path.with_suffix("").parts)


def render_pages(env: Environment, pages_dir: Path, output_dir: Path) -> list[Path]:
    """Render every page under ``pages_dir`` into the same layout under ``output_dir``.

    ``pages_dir`` must be one of the environment's template directories.
    """
    written = []
    for page in discover_pages(pages_dir):
        rel_path = page.relative_to(pages_dir)
        template = env.get_template(rel_path.as_posix())
        html = template.render(active_page=page_slug(rel_path))
        output_path = output_dir / rel_path
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(html, encoding="utf-8")
        written.append(output_path)
    logger.info("Rendered %d pages into %s", len(written), output_dir)
    return written
