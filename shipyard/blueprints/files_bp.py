"""
Files blueprint — serves stored permit, BASTP and evidence documents.

    GET /api/v1/files/<path>
"""

from flask import Blueprint, current_app, send_from_directory

files_bp = Blueprint("files", __name__, url_prefix="/api/v1/files")


@files_bp.route("/<path:storage_path>", methods=["GET"])
def serve_file(storage_path):
    # send_from_directory rejects paths escaping UPLOAD_FOLDER with 404
    return send_from_directory(current_app.config["UPLOAD_FOLDER"], storage_path)
