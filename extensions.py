from flask_limiter import Limiter

from config import RATELIMIT_STORAGE_URI
from utils.net import get_client_ip

# Initialized in app.py via init_app. Only the public resolve endpoints carry
# explicit limits; everything else is behind a session.
limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[],
    storage_uri=RATELIMIT_STORAGE_URI,
)
