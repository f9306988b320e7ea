"""Application configuration module.

Settings are read from environment variables, with a local ``.env`` file
loaded first during development. The persistence layer is addressed by
``DATABASE_URL``; hosted Postgres providers still hand out URLs beginning
with ``postgres://`` which SQLAlchemy no longer accepts, so the prefix is
rewritten to ``postgresql://``. Without a URL the service runs against a
local SQLite file.
"""

import os
from dotenv import load_dotenv


class Config:
    """Base configuration class.

    :func:`app.create_app` loads this class with ``app.config.from_object``
    and then applies any overrides passed by the caller (the test suite
    swaps in an in-memory SQLite database that way).
    """

    load_dotenv()

    # Used by Flask for session signing. Set a random value in production.
    SECRET_KEY = os.environ.get('SECRET_KEY', 'change-this-secret-in-prod')

    _db_url = os.environ.get('DATABASE_URL', '')
    if _db_url.startswith('postgres://'):
        # Only the scheme is rewritten; the rest of the URL is left alone.
        _db_url = _db_url.replace('postgres://', 'postgresql://', 1)
    SQLALCHEMY_DATABASE_URI = _db_url or 'sqlite:///hafalan.db'

    SQLALCHEMY_TRACK_MODIFICATIONS = False
