"""Status web UI for dnsabuse.

This package provides a small Flask application that shows what a
running server is doing.  It is an **optional** extra — install with::

    pip install dnsabuse[web]

and switch it on with ``[web] enabled = true``.  The ``create_app``
factory in ``app.py`` serves four JSON endpoints:

- ``GET /api/services`` — registered services and their snapshot settings.
- ``GET /api/help`` — the ``help.`` record texts.
- ``POST /api/snapshot`` — request a snapshot, like the snapshot signal.
- ``GET /api/logs`` — recent log entries.
"""
