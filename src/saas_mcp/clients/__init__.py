"""Platform REST clients. Every method returns an ApiResponse."""
from .atlassian import AtlassianClient
from .azure import AzureClient
from .base import PlatformClient
from .github import GitHubClient
from .slack import SlackClient

__all__ = ["PlatformClient", "SlackClient", "AzureClient", "AtlassianClient", "GitHubClient"]
