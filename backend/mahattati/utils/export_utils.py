import io
from datetime import datetime
from typing import Any, Dict
import pandas as pd

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _excel_safe(df: pd.DataFrame) -> pd.DataFrame:
    """Excel cannot store timezone-aware datetimes; write them as naive UTC"""
    df = df.copy()
    for column in df.columns:
        if isinstance(df[column].dtype, pd.DatetimeTZDtype):
            df[column] = df[column].dt.tz_convert("UTC").dt.tz_localize(None)
        elif df[column].dtype == object:
            df[column] = df[column].map(
                lambda v: v.replace(tzinfo=None) if isinstance(v, datetime) and v.tzinfo else v
            )
    return df


def summary_frame(summary: Dict[str, Any]) -> pd.DataFrame:
    """Flatten a report summary into metric/value rows"""
    rows = []
    for key, value in summary.items():
        if isinstance(value, dict):
            rows.extend({"metric": f"{key}.{k}", "value": v} for k, v in value.items())
        elif isinstance(value, list):
            for item in value:
                label = ".".join(str(v) for k, v in item.items() if isinstance(v, str))
                rows.extend(
                    {"metric": f"{key}.{label}.{k}", "value": v}
                    for k, v in item.items()
                    if not isinstance(v, str)
                )
        else:
            rows.append({"metric": key, "value": value})
    return pd.DataFrame(rows, columns=["metric", "value"])


def create_xlsx_workbook(sheets: Dict[str, pd.DataFrame]) -> bytes:
    """
    Write DataFrames into one workbook, one sheet per entry.

    :param sheets: sheet name -> DataFrame, in the order they should appear
    :return: the workbook content as bytes
    """
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        for name, df in sheets.items():
            # Excel limits sheet names to 31 characters
            _excel_safe(df).to_excel(writer, sheet_name=name[:31], index=False)
    output.seek(0)
    return output.read()
