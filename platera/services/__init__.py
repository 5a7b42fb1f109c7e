"""
Platera Backend — Services Layer
================================

Service Inventory:
    - IdentityProvider (abstract) / ClerkIdentityProvider: session tokens and
      profile lookups
    - AccountService: session → local account (lazy sync, link, merge)
    - account_merge: repoints a stale account's content onto the master
    - user_sync: identity provider webhook events
    - UploadService: image batch validation, upload signing, image URLs
    - RecipeService, ReviewService, CommentService, SavedService: product features

Services receive the request's AsyncSession on every call and flush without
committing; the session dependency commits once per request.
"""
