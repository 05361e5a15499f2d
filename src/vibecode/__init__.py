"""vibecode - local-first AI coding assistant with approval-gated actions."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("vibecode")
except PackageNotFoundError:
    __version__ = "0.0.0"

from vibecode.config import AgentConfig, ConfigError, load_config
from vibecode.agent import Agent, RoundOutcome, TurnState
from vibecode.conversation import ConversationManager
from vibecode.llm import LLMClient, TransportError
from vibecode.permissions import ApprovalGate
from vibecode.protocol import Intent, format_intent, parse_response
from vibecode.renderer import Renderer
from vibecode.workspace import AccessError, Workspace
