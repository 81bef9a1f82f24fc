from flask import Blueprint, Response, jsonify, request, current_app

from boutique.decorators import require_auth
from boutique.services import reporting_service, export_service, settings_service
from boutique.validation import ValidationError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")

FORMATS = ("json", "csv", "pdf")


def _render(report: dict, table_for, name: str):
    """Answer with JSON, CSV or PDF depending on ?format=."""
    fmt = (request.args.get("format") or "json").lower()
    if fmt not in FORMATS:
        return jsonify({"error": f"format must be one of {', '.join(FORMATS)}"}), 400

    if fmt == "json":
        return jsonify(report), 200

    if fmt == "csv":
        table = table_for(report, for_pdf=False)
        filename, body = export_service.rows_to_csv(export_service.table_to_csv_rows(table), name)
        mimetype = export_service.CSV_MIMETYPE
    else:
        table = table_for(report, for_pdf=True)
        body = export_service.render_table_pdf(settings_service.get_profile().business_name, table)
        filename = export_service.export_filename(name, "pdf")
        mimetype = export_service.PDF_MIMETYPE

    return Response(body, mimetype=mimetype, headers={"Content-Disposition": f'attachment; filename="{filename}"'})


@reports_bp.get("/dashboard")
@require_auth
def dashboard_report():
    try:
        return jsonify(reporting_service.dashboard()), 200
    except Exception:
        current_app.logger.exception("Failed to build dashboard")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/sales")
@require_auth
def sales_report():
    try:
        report = reporting_service.sales_report(
            start=request.args.get("start"),
            end=request.args.get("end"),
            top_n=request.args.get("top", reporting_service.DEFAULT_TOP_PRODUCTS, type=int),
        )
        return _render(report, lambda r, for_pdf: reporting_service.sales_table(r), "sales-report")
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/inventory")
@require_auth
def inventory_report():
    try:
        report = reporting_service.inventory_report(
            category=request.args.get("category") or None,
            stock_level=request.args.get("stock_level") or None,
            added_from=request.args.get("start"),
            added_to=request.args.get("end"),
        )
        return _render(report, lambda r, for_pdf: reporting_service.inventory_table(r), "inventory-report")
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/profit-loss")
@require_auth
def profit_loss_report():
    try:
        report = reporting_service.profit_loss_report(
            start=request.args.get("start"),
            end=request.args.get("end"),
            category=request.args.get("category") or None,
            item=request.args.get("item") or None,
        )
        return _render(report, reporting_service.profit_loss_table, "profit-loss-report")
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
