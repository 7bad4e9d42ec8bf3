"""Core protocol package.

Composition:
    - `message`: recursive NLIP message model and builders.
    - `backends`: backend registry and per-conversation selection.
    - `dispatcher`: routes inbound messages to handling strategies.
    - `orchestrator`: direct answer, fan-out, fan-in, image answers.
    - `errors`: error taxonomy with HTTP statuses.

Package import is side-effect free.
"""
