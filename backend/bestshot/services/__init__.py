"""
Best Shot Backend — Services Layer
====================================

What:  Business logic between routes (HTTP) and the database.

Service Inventory:
    - catalog:         photo catalog and participant lookups shared by services
    - vote_service:    vote page, selection toggles, final submission
    - change_feed:     in-process stream of ledger insert/delete events
    - tally_service:   live "who picked what" snapshot fed by the change feed
    - admin_service:   participant roster, reset, ranking
    - ranking:         stable vote-count ranking
    - export_service:  result PDF (image_fetcher + pdf_renderer)
    - circuit_breaker: fail-fast guard around the image host
"""
