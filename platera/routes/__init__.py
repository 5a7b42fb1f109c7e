"""
Platera Backend — API Routes Package
====================================

Route Inventory:
    - recipes.py:   GET/POST        /api/recipes
                    GET/PATCH/DELETE /api/recipes/{id}
                    POST            /api/recipes/{id}/save
    - reviews.py:   GET/POST        /api/recipes/{id}/reviews
                    DELETE          /api/reviews/{id}
    - comments.py:  GET/POST        /api/recipes/{id}/comments
                    DELETE          /api/comments/{id}
    - users.py:     GET             /api/users/me, /me/recipes, /me/saved
    - uploads.py:   POST            /api/upload/signature
    - webhooks.py:  POST            /api/webhooks/clerk
    - health.py:    GET             /health

Routes are thin: extract request data, call a service, shape the response.
"""
