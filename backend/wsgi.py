# backend/wsgi.py
from branchstock import create_app

app = create_app()
