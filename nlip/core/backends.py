"""Backend registry and per-conversation backend selection.

Architectural role:
    Declares the fixed, ordered set of generative backends the router knows
    about and tracks which of them are enabled for one conversation.

Registry:
    Exactly one entry is the local/default backend (answered in-process through
    the capability in `nlip.llm.client`). Every other entry is a remote backend
    the caller visits out of band through its `redirect_url`. Registry order is
    the canonical order used for fan-out and fan-in output.

Selection semantics:
    - A new selection has only the default backend enabled.
    - `replace()` resets every flag and enables exactly the requested names;
      the result may be empty.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class BackendSpec:
    """One registry entry.

    Attributes:
        name: Protocol-visible backend name (exact, case-sensitive match).
        redirect_url: Well-known external URL; `None` for the local backend.
        default: Whether this is the local/default backend.
    """

    name: str
    redirect_url: str | None = None
    default: bool = False


BACKEND_REGISTRY: tuple[BackendSpec, ...] = (
    BackendSpec("Ollama", default=True),
    BackendSpec("ChatGPT", "https://chatgpt.com/"),
    BackendSpec("ClaudeAI", "https://claude.ai/new"),
    BackendSpec("DeepSeek", "https://chat.deepseek.com/"),
    BackendSpec("Gemini", "https://gemini.google.com/app"),
)

BACKENDS_BY_NAME = {spec.name: spec for spec in BACKEND_REGISTRY}

DEFAULT_BACKEND = next(spec for spec in BACKEND_REGISTRY if spec.default)

REMOTE_BACKENDS: tuple[BackendSpec, ...] = tuple(
    spec for spec in BACKEND_REGISTRY if not spec.default
)

REMOTE_BACKEND_NAMES = frozenset(spec.name for spec in REMOTE_BACKENDS)


class BackendSelection:
    """Enabled flag per registered backend."""

    def __init__(self):
        self._enabled = {spec.name: spec.default for spec in BACKEND_REGISTRY}

    def replace(self, names) -> None:
        """Disable every backend, then enable each registered name in `names`.

        Names outside the registry are skipped; callers decide whether that is
        an error.
        """
        wanted = set(names)
        self._enabled = {spec.name: spec.name in wanted for spec in BACKEND_REGISTRY}

    @property
    def default_enabled(self) -> bool:
        return self._enabled[DEFAULT_BACKEND.name]

    def enabled_backends(self) -> list[BackendSpec]:
        return [spec for spec in BACKEND_REGISTRY if self._enabled[spec.name]]

    def enabled_remote_backends(self) -> list[BackendSpec]:
        return [spec for spec in REMOTE_BACKENDS if self._enabled[spec.name]]

    def only_default_enabled(self) -> bool:
        return self.default_enabled and not self.enabled_remote_backends()

    def as_dict(self) -> dict[str, bool]:
        return dict(self._enabled)

    def __repr__(self) -> str:
        return f"BackendSelection({self._enabled!r})"
