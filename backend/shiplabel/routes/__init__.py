# Routes package init
"""
ShipLabel Backend - HTTP Routes Package
=========================================

Route Inventory:
    - auth.py:    GET /, POST /login, GET /dashboard, POST /logout
    - labels.py:  POST /generate-label   (streamed PDF attachment)
    - health.py:  GET /health

Routes stay thin: decode the request, call a service, shape the response.
"""
