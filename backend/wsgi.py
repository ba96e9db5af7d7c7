# backend/wsgi.py
from apparel_pos import create_app

app = create_app()
