"""NLIP multi-backend router.

Architectural role:
    Routes NLIP protocol messages to the local generative backend or fans a query
    out to externally-visited backends and folds their answers back into one
    aggregate reply.

Package split:
    - `core`: message model, backend registry, dispatcher, orchestrator, errors.
    - `memory`: per-conversation state store.
    - `llm`: configuration and backend transport.
    - `storage`: optional persistence of uploaded binary artifacts.
    - `api`: FastAPI adapter and process launcher.
"""
