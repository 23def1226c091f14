import os

host = "0.0.0.0"
# CATALOG_BASE_URL in the web settings points at catalog:9001
port = int(os.getenv("CATALOG_PORT", os.getenv("PORT", "9001")))
# each worker opens its own SQLAlchemy pool against catalog-db; reads are
# cheap point lookups, so a few workers are enough
workers = int(os.getenv("CATALOG_WORKERS", str(min(4, max(2, os.cpu_count() or 1)))))
loop = "uvloop"  # needs uvicorn[standard]
http = "h11"
log_level = os.getenv("LOG_LEVEL", "info")
