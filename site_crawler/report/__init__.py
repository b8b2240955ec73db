# File: site_crawler/report/__init__.py
"""site_crawler.report: Сериализация сводки обхода в JSON для CLI и тестов."""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Union

from site_crawler.crawler.models import CrawlReport


def report_to_dict(report: CrawlReport) -> Dict[str, Any]:
    """CrawlReport -> dict, пригодный для json.dumps."""
    data = asdict(report)
    data["duration"] = round(report.duration, 3)
    return data


def render_json(report: CrawlReport, path: Union[str, Path], *, indent: int = 2) -> Path:
    """
    Сохраняет отчёт в формате JSON по указанному пути.

    :param report: сводка обхода
    :param path: путь к JSON-файлу (каталоги создаются)
    :return: Path сохранённого файла
    """
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    with output.open("w", encoding="utf-8") as f:
        json.dump(report_to_dict(report), f, ensure_ascii=False, indent=indent)
    return output


__all__ = ["render_json", "report_to_dict"]
