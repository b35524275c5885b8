"""Excel workbook helpers built on pandas and openpyxl."""

import io
from typing import Dict

import pandas as pd
from fastapi.responses import StreamingResponse

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
MAX_COLUMN_WIDTH = 50


def autosize_columns(worksheet) -> None:
    """Fit column widths to their longest value, capped at MAX_COLUMN_WIDTH."""
    for column in worksheet.columns:
        max_length = 0
        column_letter = column[0].column_letter
        for cell in column:
            if cell.value is not None:
                max_length = max(max_length, len(str(cell.value)))
        worksheet.column_dimensions[column_letter].width = min(max_length + 2, MAX_COLUMN_WIDTH)


def build_workbook(sheets: Dict[str, pd.DataFrame]) -> io.BytesIO:
    """Write each DataFrame to its own sheet and return the workbook bytes."""
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        for sheet_name, frame in sheets.items():
            frame.to_excel(writer, sheet_name=sheet_name, index=False)
            autosize_columns(writer.sheets[sheet_name])
    output.seek(0)
    return output


def xlsx_response(output: io.BytesIO, filename: str) -> StreamingResponse:
    return StreamingResponse(
        output,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
