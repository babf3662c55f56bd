# backend/wsgi.py
from erpmini import create_app

app = create_app()
