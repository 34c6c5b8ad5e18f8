# backend/wsgi.py
from stockpro import create_app

app = create_app()
