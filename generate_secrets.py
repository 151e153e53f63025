#!/usr/bin/env python3
"""
Print a starter .env for the Quiniela application with fresh secrets.

    python3 generate_secrets.py > .env
"""

import secrets

ENV_TEMPLATE = """\
SECRET_KEY={secret_key}
WTF_CSRF_SECRET_KEY={csrf_key}

# sqlite (default) or postgresql; DATABASE_URL overrides both
DB_TYPE=sqlite

# database or file
POOL_STORAGE=database
# POOL_DATA_FILE=quiniela-data.json

TIMEZONE=America/Chicago
LOG_LEVEL=INFO
"""


def generate_env():
    return ENV_TEMPLATE.format(
        secret_key=secrets.token_urlsafe(32),
        csrf_key=secrets.token_urlsafe(32),
    )


if __name__ == "__main__":
    print(generate_env(), end="")
