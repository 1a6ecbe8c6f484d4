"""
Best Shot Backend — API Routes Package
========================================

Route Inventory:
    - vote.py:    GET  /api/vote/{code}               (vote page or completed view)
                  POST /api/vote/{code}/toggle        (apply one tap)
                  POST /api/vote/{code}/submit        (final submission)
    - tally.py:   GET  /api/tally                     (live tally snapshot)
                  WS   /api/tally/ws                  (pushed snapshots)
    - admin.py:   GET  /api/admin/participants        (roster)
                  POST /api/admin/participants/{id}/reset
                  GET  /api/admin/ranking             (top 10)
                  GET  /api/admin/export.pdf          (result PDF)
    - health.py:  GET  /health

Routes stay thin: parse the request, call a service, shape the response.
"""
