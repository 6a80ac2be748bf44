from __future__ import annotations

import html
import logging
import secrets
from datetime import UTC, datetime
from pathlib import Path
from urllib.parse import urlencode

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from pydantic import BaseModel, Field
from starlette.responses import FileResponse

from app.adjustments import JournalEntryError
from app.config import APP_VERSION, LOG_FORMAT, LOG_LEVEL, OUTPUT_DIR, UPLOAD_DIR, XLSX_MEDIA_TYPE
from app.processor import ProcessingResult, process_journal_entries

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/journal_entries"
WEB_PREFIX = "/journal_entries"

app = FastAPI(title="Journal Entry MF Adjustment", version=APP_VERSION)


class ProcessingStats(BaseModel):
    total_rows: int
    rows_adjusted: int
    units_affected: int
    unapplied_residuals: dict[str, float] = Field(default_factory=dict)


class ProcessResponse(BaseModel):
    success: bool
    message: str
    download_url: str
    stats: ProcessingStats


def _is_csv(upload: UploadFile) -> bool:
    filename = upload.filename or ""
    return upload.content_type == "text/csv" or filename.lower().endswith(".csv")


def _save_upload(upload: UploadFile, prefix: str) -> Path:
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    path = UPLOAD_DIR / f"{prefix}_{secrets.token_hex(8)}.csv"
    with path.open("wb") as f:
        f.write(upload.file.read())
    return path


def _output_filename(prefix: str) -> str:
    timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
    return f"{prefix}_{timestamp}_{secrets.token_hex(4)}.xlsx"


def _process_upload(upload: UploadFile, upload_prefix: str, output_prefix: str) -> tuple[str, ProcessingResult]:
    """Stage the upload, run the adjustment, and always remove the staged CSV."""
    input_path: Path | None = None
    try:
        input_path = _save_upload(upload, upload_prefix)
        output_filename = _output_filename(output_prefix)
        result = process_journal_entries(input_path, OUTPUT_DIR / output_filename)
    finally:
        if input_path is not None and input_path.exists():
            input_path.unlink()
    return output_filename, result


def _output_path(filename: str) -> Path | None:
    if not filename.endswith(".xlsx"):
        filename = f"{filename}.xlsx"
    if Path(filename).name != filename:
        return None
    file_path = OUTPUT_DIR / filename
    return file_path if file_path.is_file() else None


def _download(file_path: Path) -> FileResponse:
    return FileResponse(file_path, filename=file_path.name, media_type=XLSX_MEDIA_TYPE)


@app.get("/health")
def health() -> JSONResponse:
    return JSONResponse(
        {
            "status": "ok",
            "timestamp": datetime.now(UTC).replace(microsecond=0).isoformat(),
            "version": APP_VERSION,
        }
    )


# ---------------------------------------------------------------------------
# JSON API
# ---------------------------------------------------------------------------

@app.post(API_PREFIX)
def api_process_journal_entries(file: UploadFile | None = File(None)) -> JSONResponse:
    """Run the MF adjustment over an uploaded CSV and return stats plus a download link."""
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if not _is_csv(file):
        raise HTTPException(status_code=400, detail="Please upload a valid CSV file")

    try:
        output_filename, result = _process_upload(file, "api_upload", "Adjusted_JE_API")
    except JournalEntryError as exc:
        logger.error("Rejected upload %s: %s", file.filename, exc)
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("Processing error for upload %s", file.filename)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    response = ProcessResponse(
        success=True,
        message="File processed successfully",
        download_url=f"{API_PREFIX}/download/{output_filename}",
        stats=ProcessingStats(**result.as_dict()),
    )
    return JSONResponse(response.model_dump())


@app.get(API_PREFIX + "/download/{filename}")
def api_download(filename: str) -> FileResponse:
    file_path = _output_path(filename)
    if file_path is None:
        raise HTTPException(status_code=404, detail="File not found")
    return _download(file_path)


# ---------------------------------------------------------------------------
# Browser upload flow
# ---------------------------------------------------------------------------

def _page(title: str, body: str) -> str:
    return f"""<!doctype html>
<html><head><meta charset="utf-8"><title>{html.escape(title)}</title></head>
<body>
<h1>{html.escape(title)}</h1>
{body}
</body></html>"""


def _redirect_home(error: str) -> RedirectResponse:
    return RedirectResponse(url="/?" + urlencode({"error": error}), status_code=303)


@app.get("/", response_class=HTMLResponse)
def homepage(error: str | None = None) -> str:
    flash = f'<p class="error">{html.escape(error)}</p>\n' if error else ""
    return _page(
        "Journal Entry MF Adjustment",
        flash
        + f"""<form action="{WEB_PREFIX}" method="post" enctype="multipart/form-data">
<input type="file" name="file" accept=".csv,text/csv">
<button type="submit">Process</button>
</form>
<p>API is live at <code>{API_PREFIX}</code></p>""",
    )


@app.post(WEB_PREFIX)
def web_process_journal_entries(file: UploadFile | None = File(None)) -> RedirectResponse:
    if file is None or not file.filename:
        return _redirect_home("Please select a CSV file to upload")
    if not _is_csv(file):
        return _redirect_home("Please upload a valid CSV file")

    try:
        output_filename, result = _process_upload(file, "input", "Adjusted_JE")
    except JournalEntryError as exc:
        logger.error("Rejected upload %s: %s", file.filename, exc)
        return _redirect_home(f"Error processing file: {exc}")
    except Exception as exc:
        logger.exception("Processing error for upload %s", file.filename)
        return _redirect_home(f"Error processing file: {exc}")

    query = urlencode(
        {
            "file": output_filename,
            "total_rows": result.total_rows,
            "rows_adjusted": result.rows_adjusted,
            "units_affected": result.units_affected,
        }
    )
    return RedirectResponse(url=f"{WEB_PREFIX}/result?{query}", status_code=303)


@app.get(WEB_PREFIX + "/result", response_class=HTMLResponse, response_model=None)
def web_result(
    file: str | None = None,
    total_rows: int = 0,
    rows_adjusted: int = 0,
    units_affected: int = 0,
) -> str | RedirectResponse:
    if not file or Path(file).name != file:
        return RedirectResponse(url="/", status_code=303)

    download_url = f"{WEB_PREFIX}/download/{file}"
    return _page(
        "Processing complete",
        f"""<table>
<tr><th>Total rows</th><td>{total_rows}</td></tr>
<tr><th>Rows adjusted</th><td>{rows_adjusted}</td></tr>
<tr><th>Units affected</th><td>{units_affected}</td></tr>
</table>
<p><a href="{html.escape(download_url)}">Download {html.escape(file)}</a></p>
<p><a href="/">Process another file</a></p>""",
    )


@app.get(WEB_PREFIX + "/download/{filename}", response_model=None)
def web_download(filename: str) -> FileResponse | RedirectResponse:
    file_path = _output_path(filename)
    if file_path is None:
        return _redirect_home("File not found or has expired")
    return _download(file_path)


@app.on_event("startup")
def on_startup() -> None:
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
