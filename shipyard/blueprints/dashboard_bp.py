"""
Dashboard Blueprint — status rollup views.

Endpoints:
    GET /api/v1/dashboard                      — stats + prioritised alerts
    GET /api/v1/dashboard/vessels              — per-vessel summaries (search / sort)
    GET /api/v1/vessels/<id>/work-orders       — one vessel's work orders with progress
"""

from flask import Blueprint, jsonify, request

from shipyard.services import dashboard_service as svc

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/v1")


@dashboard_bp.route("/dashboard", methods=["GET"])
def dashboard():
    return jsonify(svc.get_dashboard()), 200


@dashboard_bp.route("/dashboard/vessels", methods=["GET"])
def vessel_summaries():
    return jsonify(svc.get_vessel_summaries(
        search=request.args.get("search", ""),
        sort=request.args.get("sort", "name"),
        direction=request.args.get("direction", "asc"),
    )), 200


@dashboard_bp.route("/vessels/<int:vessel_id>/work-orders", methods=["GET"])
def vessel_work_orders(vessel_id):
    return jsonify(svc.get_vessel_work_orders(
        vessel_id,
        search=request.args.get("search", ""),
        sort=request.args.get("sort", "shipyard_wo_date"),
        direction=request.args.get("direction", "desc"),
    )), 200
