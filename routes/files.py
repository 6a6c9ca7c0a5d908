import os

from flask import Blueprint, current_app, send_from_directory

files_bp = Blueprint("files", __name__)


@files_bp.route("/api/files/<path:filename>", methods=["GET"])
def get_stored_file(filename):
    root = os.path.abspath(current_app.config["UPLOADS_FOLDER"])
    return send_from_directory(root, filename, mimetype="application/pdf")
