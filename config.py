import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///invoices.db")

UPLOADS_FOLDER = os.getenv("UPLOADS_FOLDER", "uploads")
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "10"))
ALLOWED_MIME_TYPES = ("application/pdf",)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", "3000"))
