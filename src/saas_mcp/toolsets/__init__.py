"""Tool sets, one per platform, plus the cross-platform summary."""
from .atlassian import AtlassianTools
from .azure import AzureTools
from .combined import CombinedTools
from .github import GitHubTools
from .slack import SlackTools

__all__ = ["SlackTools", "AzureTools", "AtlassianTools", "GitHubTools", "CombinedTools"]
