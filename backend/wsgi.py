# backend/wsgi.py
from printshop import create_app

app = create_app()
