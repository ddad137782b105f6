# Preload so build_core() runs once in the master before forking
preload_app = True

workers = 2
threads = 4

# Bind
bind = "0.0.0.0:8080"

# Logging
accesslog = "-"
errorlog = "-"
loglevel = "info"

# Requests are short; storage calls are bounded by DB_STATEMENT_TIMEOUT_MS
timeout = 30


def worker_exit(server, worker):
    """Drain queued scan events before the worker goes away."""
    from app import app
    core = app.extensions.get("qr_core")
    if core is not None:
        core.audit_log.flush(timeout=5.0)
        core.audit_log.stop(timeout=5.0)
