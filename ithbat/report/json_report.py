# ithbat/report/json_report.py

"""
JSON report of a verification run.
"""
import json
from pathlib import Path

from ithbat.verification import VerificationResponse


def render_json(response: VerificationResponse, output_path: Path | str, *, pretty: bool = True) -> Path:
    """
    Write *response* in its wire form ``{results, query, totalFound}``.

    :param response: result of :meth:`Verifier.verify`
    :param output_path: destination file; parent directories are created
    :param pretty: indent the output by two spaces
    :return: Path of the written file
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open('w', encoding='utf-8') as f:
        json.dump(response.to_dict(), f, ensure_ascii=False, indent=2 if pretty else None)

    return output
