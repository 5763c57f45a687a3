# backend/wsgi.py
from elibrary import create_app

app = create_app()
