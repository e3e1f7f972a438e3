from __future__ import annotations

from datetime import date, datetime

from flask import Blueprint, Response, abort, current_app, g, jsonify, request

from app.fintrack.constants import CSV_REPORT_FILENAMES, CSV_REPORT_TYPES
from app.fintrack.db import db_session
from app.fintrack.modules.reports.csv_export import build_csv_report
from app.fintrack.modules.reports.service import build_financial_report, parse_report_window
from app.fintrack.rbac import require_admin

bp = Blueprint("reports", __name__)

# UTF-8 byte order mark (Excel)
CSV_BOM = "\ufeff"


@bp.get("/reports/financial")
@require_admin
def financial_report():
    s = db_session()
    today = date.today()
    window = parse_report_window(request.args, today=today)
    return jsonify(build_financial_report(s, window, today=today))


@bp.get("/reports/csv")
@require_admin
def csv_report():
    s = db_session()
    report_type = (request.args.get("type") or "movements").strip().lower()
    if report_type not in CSV_REPORT_TYPES:
        abort(400, description=f"Invalid report type. Use one of: {', '.join(CSV_REPORT_TYPES)}")
    include_user = (request.args.get("include_user") or "true").strip().lower() == "true"
    window = parse_report_window(request.args)

    text, row_count = build_csv_report(s, report_type, window, include_user=include_user)
    if row_count == 0:
        abort(404, description="No data found to generate the report.")

    timestamp = datetime.utcnow().strftime("%Y-%m-%dT%H-%M-%S")
    filename = f"{CSV_REPORT_FILENAMES[report_type]}_{timestamp}.csv"
    current_app.logger.info(
        "CSV report generated type=%s rows=%s user_id=%s", report_type, row_count, getattr(g.current_user, "id", None)
    )
    return Response(
        CSV_BOM + text,
        status=200,
        content_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "no-cache",
        },
    )
