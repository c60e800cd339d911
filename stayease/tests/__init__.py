import os

# Tests never talk to real Postgres, Redis, S3 or SMTP.
os.environ.setdefault("STAYEASE_USE_IN_MEMORY_BACKENDS", "true")
