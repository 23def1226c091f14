import os

host = "0.0.0.0"
port = int(os.getenv("PORT", "9002"))
# one worker: connections live in process memory
workers = 1
loop = "uvloop"  # needs uvicorn[standard]
http = "h11"
log_level = os.getenv("LOG_LEVEL", "info")
