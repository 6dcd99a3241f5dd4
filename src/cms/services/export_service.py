# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Tabular export of the article collection (CSV / XLSX)."""

from __future__ import annotations

import io
from typing import Sequence

import pandas as pd

from cms.core.models import COLUMNS, Article

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def articles_to_frame(articles: Sequence[Article]) -> pd.DataFrame:
    return pd.DataFrame([a.to_dict() for a in articles], columns=list(COLUMNS))


def export_csv(articles: Sequence[Article]) -> str:
    buf = io.StringIO()
    articles_to_frame(articles).to_csv(buf, index=False)
    return buf.getvalue()


def export_xlsx(articles: Sequence[Article]) -> bytes:
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        articles_to_frame(articles).to_excel(writer, sheet_name="Articles", index=False)
    return buf.getvalue()
