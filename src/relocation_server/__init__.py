"""relocation_server — FastAPI REST API for the member relocation flows.

Exposes the ``FlowService`` as a stateless HTTP API: flow listing, the
question-by-question conversation, artifact previews and downloads, the
"My Documents" catalog, per-member data clearing, and an admin sweep.
"""
