"""Backend access package.

Architectural role:
    Provides runtime configuration, request-payload construction, and the HTTP
    transport used by the orchestrator to invoke the default generative backend.

Module split:
    - `provider_config`: environment-driven settings.
    - `service`: backend capability (`OllamaBackend`) and its protocol.
    - `client`: Ollama HTTP transport and response parsing.
"""
