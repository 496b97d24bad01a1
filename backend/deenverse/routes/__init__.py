# Routes package init
"""
DeenVerse Backend: API Routes Package
======================================

Route Inventory:
    - health.py:         GET  /health
    - auth.py:           POST /api/auth/register, /api/auth/logout
    - users.py:          /api/users/... (directory, profile, follow graph, peer requests)
    - imaam.py:          /api/imaam/... (teacher directory, featured, search, student-teacher requests)
    - notifications.py:  /api/notifications/...

Routes stay thin: they parse the request, resolve the acting account,
call one service method and wrap the result in the response envelope.
"""
