# File: ithbat/report/html_report.py
"""ithbat.report.html_report: HTML report of a verification run, rendered with Jinja2."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ithbat.scoring import RELEVANCE_RANK
from ithbat.verification import VerificationResponse

TEMPLATE_NAME = "verification.html.j2"
DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"


def render_html(
    response: VerificationResponse,
    template_dir: Optional[Union[Path, str]],
    output_path: Union[Path, str],
    *,
    claim: str = "",
) -> Path:
    """Render *response* through ``verification.html.j2`` and save it.

    Args:
        response: result of a verification run.
        template_dir: directory holding the template; None for the bundled one.
        output_path: destination HTML file.
        claim: the claim as the user wrote it, shown in the header.

    Returns:
        Path of the written file.
    """
    template_dir = Path(template_dir) if template_dir else DEFAULT_TEMPLATE_DIR
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )
    template = env.get_template(TEMPLATE_NAME)

    counts = {label: 0 for label in RELEVANCE_RANK}
    for result in response.results:
        counts[result.relevance] += 1

    context: dict[str, Any] = {
        "query": response.query,
        "claim": claim,
        "results": response.results,
        "total_found": response.total_found,
        "counts": counts,
    }

    output_path.write_text(template.render(**context), encoding="utf-8")
    return output_path
