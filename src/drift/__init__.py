"""
drift - agent activity timeline

Scan git repositories for commits made by AI coding agents, group them into
work sessions, and keep a browsable history of what the agents did.
"""

__version__ = "0.1.0"

from drift.config import Config, load_config
from drift.differ import get_session_diff, get_session_diff_stats
from drift.grouper import group_into_sessions
from drift.models import AgentCommit, DiffStats, Session, generate_session_id
from drift.scanner import is_agent_commit, scan_all_repos
from drift.storage import SessionStore

__all__ = [
    "__version__",
    # Models
    "AgentCommit",
    "Session",
    "DiffStats",
    "generate_session_id",
    # Config
    "Config",
    "load_config",
    # Pipeline
    "is_agent_commit",
    "scan_all_repos",
    "group_into_sessions",
    "get_session_diff",
    "get_session_diff_stats",
    # Storage
    "SessionStore",
]
