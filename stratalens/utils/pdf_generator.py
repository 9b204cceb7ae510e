"""PDF table export — Jinja2 + WeasyPrint (fully offline)."""

import os
import logging
from datetime import datetime
from typing import List, Sequence

import pandas as pd

from stratalens.core.coercion import stringify

logger = logging.getLogger(__name__)

TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), "..", "templates")


def render_table_html(df: pd.DataFrame, headers: Sequence[str], title: str) -> str:
    """Render the export template for *df* restricted to *headers*."""
    from jinja2 import Environment, FileSystemLoader, select_autoescape

    env = Environment(
        loader=FileSystemLoader(os.path.abspath(TEMPLATE_DIR)),
        autoescape=select_autoescape(["html"]),
    )
    template = env.get_template("export_template.html")

    rows: List[List[str]] = [
        [stringify(row[h]) for h in headers] for _, row in df.iterrows()
    ]
    return template.render(
        title=title,
        generated_at=datetime.now().strftime("%Y-%m-%d %H:%M"),
        headers=list(headers),
        rows=rows,
    )


def generate_table_pdf(df: pd.DataFrame, headers: Sequence[str], title: str, out_path: str) -> str:
    """Write *df* as a PDF table and return the file path.

    Uses WeasyPrint for HTML → PDF conversion (fully offline).
    Falls back to the HTML file if WeasyPrint is not installed.
    """
    html_content = render_table_html(df, headers, title)

    html_path = os.path.splitext(out_path)[0] + ".html"
    os.makedirs(os.path.dirname(os.path.abspath(html_path)), exist_ok=True)
    with open(html_path, "w", encoding="utf-8") as f:
        f.write(html_content)
    logger.info(f"Export HTML saved to {html_path}")

    try:
        from weasyprint import HTML
        HTML(string=html_content, base_url=os.path.abspath(TEMPLATE_DIR)).write_pdf(out_path)
        logger.info(f"PDF export saved to {out_path}")
        return out_path
    except ImportError:
        logger.warning("WeasyPrint not installed — returning HTML export instead")
        return html_path
    except Exception as e:
        logger.error(f"WeasyPrint PDF generation failed: {e}")
        return html_path
