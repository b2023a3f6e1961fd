"""Patient-flow application.

Models, services and API routes for triage ordering, clinician token
boards, the bed lifecycle and appointment gating.
"""
