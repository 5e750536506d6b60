# nutricoach_app/wsgi.py
# -*- coding: utf-8 -*-
from nutricoach_app import create_app

app = create_app()
