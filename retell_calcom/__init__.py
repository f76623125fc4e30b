"""Retell → Cal.com booking adapter.

Architecture Overview
=====================

A single synchronous proxy hop:

1. **Webhook receiver** (``api/routes.py``): accepts the Retell
   function-call POST, locates the call arguments and dispatches
   ``book_calcom_appointment_custom``.

2. **Booking translator** (``services/booking.py``): checks ``start``,
   ``name`` and ``phone``, maps them onto Cal.com's booking schema, calls
   ``POST /bookings`` once and normalizes the answer.

Request flow: receiver → translator → Cal.com → translator → receiver.
Nothing is persisted and nothing is shared between requests apart from the
read-only settings and the HTTP connection pool.

Key Design Decisions
--------------------
- **Errors**: validation problems answer 400, Cal.com failures answer 500,
  both as ``{"success": false, "error": ...}`` (see ``errors.py``).
- **No retries, no idempotency**: every webhook call is exactly one booking
  attempt.
- **Configuration**: read once into a frozen ``Settings`` model; the API key
  can come from ``.env`` or SSM Parameter Store.

Package Structure
-----------------
- ``retell_calcom/config.py``: settings loading
- ``retell_calcom/errors.py``: exception hierarchy
- ``retell_calcom/models.py``: booking request/result shapes
- ``retell_calcom/server.py``: FastAPI application and CLI entry point
- ``retell_calcom/services/``: Cal.com client, booking translator, metrics
- ``retell_calcom/api/``: FastAPI routes and Pydantic schemas
"""
