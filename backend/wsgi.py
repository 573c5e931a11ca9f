# backend/wsgi.py
from freshcorner import create_app

app = create_app()
